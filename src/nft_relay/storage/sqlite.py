"""SQLite implementation of the StateStore protocol."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from nft_relay.models.events import BridgeEvent, Direction
from nft_relay.models.records import ActivityRecord, FeeQuote, RequestRecord

SCHEMA = """
-- Block cursors for resumption, one per log subscription
CREATE TABLE IF NOT EXISTS cursor (
    name TEXT PRIMARY KEY,
    last_block INTEGER NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Dedup ledger: one row per (direction, tx_hash, log_index)
CREATE TABLE IF NOT EXISTS requests (
    direction TEXT NOT NULL,
    tx_hash TEXT NOT NULL,
    log_index INTEGER NOT NULL,
    contract_address TEXT NOT NULL,
    from_address TEXT NOT NULL,
    to_address TEXT NOT NULL,
    token_id TEXT NOT NULL,
    block_number INTEGER,
    status TEXT NOT NULL,
    error TEXT,
    token_uri TEXT,
    confirmations INTEGER NOT NULL DEFAULT 0,
    result_tx_hash TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (direction, tx_hash, log_index)
);
CREATE INDEX IF NOT EXISTS idx_requests_status ON requests(status);

-- Published unwrap fee history
CREATE TABLE IF NOT EXISTS fee_quotes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    gas_price_wei TEXT NOT NULL,
    fixed_gas_units INTEGER NOT NULL,
    computed_fee_wei TEXT NOT NULL,
    computed_at TEXT NOT NULL,
    tx_hash TEXT
);

-- Activity log
CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    tx_hash TEXT,
    token_id TEXT,
    message TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_activity_created ON activity_log(created_at);
"""

# Failed requests that never changed chain state may be claimed again
# when the provider redelivers the same event.
RECLAIMABLE_ERRORS = ("metadata_fetch_failed",)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStateStore:
    """SQLite-backed implementation of the StateStore protocol.

    Token ids and wei amounts are uint256 on-chain, so they are stored as
    decimal TEXT and converted back to int on read.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        if self._db is not None:
            return
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self, name: str) -> int | None:
        async with self.db.execute(
            "SELECT last_block FROM cursor WHERE name=?", (name,)
        ) as cur:
            row = await cur.fetchone()
            return row["last_block"] if row else None

    async def set_cursor(self, name: str, block: int) -> None:
        await self.db.execute(
            "INSERT INTO cursor (name, last_block, updated_at) VALUES (?, ?, ?)"
            " ON CONFLICT(name) DO UPDATE SET last_block=excluded.last_block,"
            " updated_at=excluded.updated_at",
            (name, block, _now()),
        )
        await self.db.commit()

    # ── Requests (dedup ledger) ────────────────────────────

    async def claim_request(self, event: BridgeEvent, status: str) -> bool:
        now = _now()
        cur = await self.db.execute(
            "INSERT OR IGNORE INTO requests"
            " (direction, tx_hash, log_index, contract_address, from_address,"
            "  to_address, token_id, block_number, status, created_at, updated_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                event.direction.value, event.origin_tx_hash, event.log_index,
                event.contract_address, event.from_address, event.to_address,
                str(event.token_id), event.block_number, status, now, now,
            ),
        )
        claimed = cur.rowcount == 1
        if not claimed:
            placeholders = ",".join("?" for _ in RECLAIMABLE_ERRORS)
            cur = await self.db.execute(
                "UPDATE requests SET status=?, error=NULL, updated_at=?"
                " WHERE direction=? AND tx_hash=? AND log_index=?"
                f" AND status='failed' AND error IN ({placeholders})",
                (
                    status, now, event.direction.value, event.origin_tx_hash,
                    event.log_index, *RECLAIMABLE_ERRORS,
                ),
            )
            claimed = cur.rowcount == 1
        await self.db.commit()
        return claimed

    async def get_request(
        self, direction: Direction, tx_hash: str, log_index: int
    ) -> RequestRecord | None:
        async with self.db.execute(
            "SELECT * FROM requests WHERE direction=? AND tx_hash=? AND log_index=?",
            (direction.value, tx_hash, log_index),
        ) as cur:
            row = await cur.fetchone()
            return _row_to_request(row) if row else None

    async def update_request(
        self,
        direction: Direction,
        tx_hash: str,
        log_index: int,
        status: str,
        error: str | None = None,
        token_uri: str | None = None,
        confirmations: int | None = None,
        result_tx_hash: str | None = None,
    ) -> None:
        sets = ["status=?", "updated_at=?"]
        params: list = [status, _now()]
        if error is not None:
            sets.append("error=?")
            params.append(error)
        if token_uri is not None:
            sets.append("token_uri=?")
            params.append(token_uri)
        if confirmations is not None:
            sets.append("confirmations=?")
            params.append(confirmations)
        if result_tx_hash is not None:
            sets.append("result_tx_hash=?")
            params.append(result_tx_hash)
        params.extend([direction.value, tx_hash, log_index])
        await self.db.execute(
            f"UPDATE requests SET {', '.join(sets)}"
            " WHERE direction=? AND tx_hash=? AND log_index=?",
            params,
        )
        await self.db.commit()

    async def get_requests(
        self, direction: Direction | None = None, statuses: list[str] | None = None
    ) -> list[RequestRecord]:
        query = "SELECT * FROM requests"
        clauses: list[str] = []
        params: list = []
        if direction is not None:
            clauses.append("direction=?")
            params.append(direction.value)
        if statuses:
            clauses.append(f"status IN ({','.join('?' for _ in statuses)})")
            params.extend(statuses)
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at"
        async with self.db.execute(query, params) as cur:
            return [_row_to_request(row) async for row in cur]

    # ── Fee quotes ─────────────────────────────────────────

    async def save_fee_quote(self, quote: FeeQuote, tx_hash: str | None) -> None:
        await self.db.execute(
            "INSERT INTO fee_quotes"
            " (gas_price_wei, fixed_gas_units, computed_fee_wei, computed_at, tx_hash)"
            " VALUES (?, ?, ?, ?, ?)",
            (
                str(quote.gas_price_wei), quote.fixed_gas_units,
                str(quote.computed_fee_wei), quote.computed_at, tx_hash,
            ),
        )
        await self.db.commit()

    async def get_latest_fee_quote(self) -> FeeQuote | None:
        async with self.db.execute(
            "SELECT * FROM fee_quotes ORDER BY id DESC LIMIT 1"
        ) as cur:
            row = await cur.fetchone()
            if row is None:
                return None
            return FeeQuote(
                gas_price_wei=int(row["gas_price_wei"]),
                fixed_gas_units=row["fixed_gas_units"],
                computed_fee_wei=int(row["computed_fee_wei"]),
                computed_at=row["computed_at"],
            )

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        tx_hash: str | None = None,
        token_id: int | None = None,
    ) -> None:
        await self.db.execute(
            "INSERT INTO activity_log (event_type, tx_hash, token_id, message, created_at)"
            " VALUES (?, ?, ?, ?, ?)",
            (
                event_type, tx_hash,
                str(token_id) if token_id is not None else None,
                message, _now(),
            ),
        )
        await self.db.commit()

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        async with self.db.execute(
            "SELECT * FROM activity_log ORDER BY id DESC LIMIT ?", (limit,)
        ) as cur:
            return [
                ActivityRecord(
                    id=row["id"],
                    event_type=row["event_type"],
                    tx_hash=row["tx_hash"],
                    token_id=int(row["token_id"]) if row["token_id"] is not None else None,
                    message=row["message"],
                    created_at=row["created_at"],
                )
                async for row in cur
            ]


# ── Row converters ─────────────────────────────────────────


def _row_to_request(row: aiosqlite.Row) -> RequestRecord:
    return RequestRecord(
        direction=row["direction"],
        tx_hash=row["tx_hash"],
        log_index=row["log_index"],
        contract_address=row["contract_address"],
        from_address=row["from_address"],
        to_address=row["to_address"],
        token_id=int(row["token_id"]),
        block_number=row["block_number"],
        status=row["status"],
        error=row["error"],
        token_uri=row["token_uri"],
        confirmations=row["confirmations"],
        result_tx_hash=row["result_tx_hash"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
