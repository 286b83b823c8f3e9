"""Burn -> finality -> release -> fee refresh lifecycle."""

from __future__ import annotations

import asyncio

import pytest
from eth_utils import to_checksum_address

from nft_relay.models.events import BurnLogEvent, Direction
from nft_relay.models.records import UnwrapError, UnwrapStatus
from nft_relay.relay.unwrap import DecodeError, UnwrapRelay, decode_unwrap_log

from tests.factories import BRIDGE, BURNER, COLLECTION, CUSTODY, RECIPIENT, make_burn_log


def _relay(ctx, store, fee_oracle, **kwargs) -> UnwrapRelay:
    params = dict(confirmations=25, poll_interval=0, finality_timeout=0.2, rpc_timeout=1.0)
    params.update(kwargs)
    return UnwrapRelay(ctx, store, fee_oracle, **params)


async def _until(predicate, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("condition not reached")


# ── Decoding ──────────────────────────────────────────────────────


def test_decode_unwrap_log():
    entry = make_burn_log(token_id=7, log_index=3, block_number=901)

    event = decode_unwrap_log(entry)

    assert event.direction == Direction.BURN_TO_UNWRAP
    assert event.token_id == 7
    assert event.to_address == to_checksum_address(RECIPIENT)
    assert event.from_address == to_checksum_address(BURNER)
    assert event.log_index == 3
    assert event.block_number == 901
    assert event.contract_address == BRIDGE


def test_decode_rejects_truncated_payload():
    entry = BurnLogEvent(
        tx_hash="0xabc", log_index=0, block_number=1, address=BRIDGE, data=b"\x01\x02",
    )
    with pytest.raises(DecodeError):
        decode_unwrap_log(entry)


# ── Happy path ────────────────────────────────────────────────────


async def test_final_burn_is_released_and_fee_refreshed(
    unwrap_relay, store, mock_origin, mock_destination,
):
    """Burn of token 7 reaches 25 confirmations -> release -> fee published."""
    entry = make_burn_log(token_id=7)
    mock_destination.set_confirmations(entry.tx_hash, 3, 12, 25)
    mock_origin.gas_price_wei = 20_000_000_000

    outcome = await unwrap_relay.handle(entry)

    assert outcome.released
    assert outcome.status == UnwrapStatus.FEE_REFRESHED
    assert outcome.confirmations == 25
    assert outcome.fee_wei == 2_820_000_000_000_000
    assert mock_origin.release_calls == [
        (COLLECTION, CUSTODY, to_checksum_address(RECIPIENT), 7),
    ]
    assert mock_destination.publish_calls == [2_820_000_000_000_000]

    record = await store.get_request(Direction.BURN_TO_UNWRAP, entry.tx_hash, 0)
    assert record.status == "fee_refreshed"
    assert record.confirmations == 25
    assert record.result_tx_hash == outcome.release_tx_hash


async def test_release_waits_for_exact_threshold(
    ctx, store, fee_oracle, mock_origin, mock_destination,
):
    relay = _relay(ctx, store, fee_oracle, finality_timeout=None)
    entry = make_burn_log(token_id=8)
    mock_destination.set_confirmations(entry.tx_hash, 23, 24, 25)

    outcome = await relay.handle(entry)

    assert outcome.released
    assert len(mock_destination.confirmation_calls) == 3
    assert len(mock_origin.release_calls) == 1


async def test_reorged_burn_counts_from_zero(
    ctx, store, fee_oracle, mock_origin, mock_destination,
):
    relay = _relay(ctx, store, fee_oracle, finality_timeout=None)
    entry = make_burn_log(token_id=4)
    mock_destination.set_confirmations(entry.tx_hash, 20, 0, 5, 25)

    outcome = await relay.handle(entry)

    assert outcome.released
    assert len(mock_destination.confirmation_calls) == 4


async def test_custom_threshold(ctx, store, fee_oracle, mock_origin, mock_destination):
    relay = _relay(ctx, store, fee_oracle, confirmations=3)
    entry = make_burn_log(token_id=2)
    mock_destination.set_confirmations(entry.tx_hash, 3)

    outcome = await relay.handle(entry)

    assert relay.threshold == 3
    assert outcome.released


# ── Finality gate ─────────────────────────────────────────────────


async def test_no_release_below_threshold(ctx, store, fee_oracle, mock_origin, mock_destination):
    relay = _relay(ctx, store, fee_oracle, finality_timeout=0.05)
    entry = make_burn_log(token_id=7)
    mock_destination.set_confirmations(entry.tx_hash, 24)

    outcome = await relay.handle(entry)

    assert outcome.status == UnwrapStatus.FAILED
    assert outcome.error == UnwrapError.FINALITY_TIMEOUT
    assert outcome.confirmations == 24
    assert mock_origin.release_calls == []
    assert mock_destination.publish_calls == []

    record = await store.get_request(Direction.BURN_TO_UNWRAP, entry.tx_hash, 0)
    assert record.status == "failed"
    assert record.error == "finality_timeout"
    assert record.confirmations == 24


async def test_confirmation_read_errors_are_retried(
    ctx, store, fee_oracle, mock_origin, mock_destination, monkeypatch,
):
    relay = _relay(ctx, store, fee_oracle, finality_timeout=None)
    entry = make_burn_log(token_id=6)
    calls = []

    async def flaky_confirmations(tx_hash: str) -> int:
        calls.append(tx_hash)
        if len(calls) < 3:
            raise ConnectionError("rpc hiccup")
        return 30

    monkeypatch.setattr(mock_destination, "confirmations", flaky_confirmations)

    outcome = await relay.handle(entry)

    assert outcome.released
    assert outcome.confirmations == 30
    assert len(calls) == 3


async def test_waiting_burn_does_not_block_others(
    ctx, store, fee_oracle, mock_origin, mock_destination,
):
    """A burn stuck below the threshold leaves a later, final burn unaffected."""
    relay = _relay(ctx, store, fee_oracle, finality_timeout=None)
    slow = make_burn_log(token_id=1, block_number=990)
    fast = make_burn_log(token_id=2, block_number=900)
    mock_destination.set_confirmations(slow.tx_hash, 2)
    mock_destination.set_confirmations(fast.tx_hash, 25)

    slow_task = asyncio.create_task(relay.handle(slow))
    await _until(lambda: slow_task in relay.waiting_tasks)
    assert slow_task in relay.waiting_tasks

    fast_outcome = await relay.handle(fast)

    assert fast_outcome.released
    assert [c[3] for c in mock_origin.release_calls] == [2]
    assert not slow_task.done()

    slow_task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await slow_task


async def test_cancelled_wait_stays_resumable(
    ctx, store, fee_oracle, mock_origin, mock_destination,
):
    relay = _relay(ctx, store, fee_oracle, finality_timeout=None)
    entry = make_burn_log(token_id=11)
    mock_destination.set_confirmations(entry.tx_hash, 10)

    task = asyncio.create_task(relay.handle(entry))
    await _until(lambda: len(mock_destination.confirmation_calls) >= 2)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert relay.waiting_tasks == set()
    record = await store.get_request(Direction.BURN_TO_UNWRAP, entry.tx_hash, 0)
    assert record.status == "awaiting_finality"
    assert record.confirmations == 10
    assert mock_origin.release_calls == []

    # Next start picks it up
    mock_destination.set_confirmations(entry.tx_hash, 25)
    outcome = await relay.resume(record)
    assert outcome.released
    assert mock_origin.release_calls[0][3] == 11


# ── Detection and dedup ───────────────────────────────────────────


async def test_detect_claims_without_waiting(unwrap_relay, store, mock_destination):
    entry = make_burn_log(token_id=5)

    event = await unwrap_relay.detect(entry)

    assert event.token_id == 5
    assert mock_destination.confirmation_calls == []
    record = await store.get_request(Direction.BURN_TO_UNWRAP, entry.tx_hash, 0)
    assert record.status == "detected"


async def test_duplicate_log_released_once(unwrap_relay, mock_origin, mock_destination):
    entry = make_burn_log(token_id=7)
    mock_destination.set_confirmations(entry.tx_hash, 25)

    first = await unwrap_relay.handle(entry)
    second = await unwrap_relay.handle(entry)

    assert first.released
    assert second.status == UnwrapStatus.DUPLICATE
    assert len(mock_origin.release_calls) == 1


async def test_undecodable_log_dropped(unwrap_relay, store, mock_origin):
    entry = BurnLogEvent(
        tx_hash="0x" + "ab" * 32, log_index=0, block_number=1, address=BRIDGE, data=b"",
    )

    outcome = await unwrap_relay.handle(entry)

    assert outcome.status == UnwrapStatus.FAILED
    assert outcome.error == UnwrapError.DECODE_FAILED
    assert mock_origin.release_calls == []
    assert await store.get_requests() == []
    activity = await store.get_recent_activity(5)
    assert activity[0].event_type == "decode_failed"


# ── Failures after finality ──────────────────────────────────────


async def test_release_failure_recorded(unwrap_relay, store, mock_origin, mock_destination):
    mock_origin.release_succeeds = False
    entry = make_burn_log(token_id=7)
    mock_destination.set_confirmations(entry.tx_hash, 25)

    outcome = await unwrap_relay.handle(entry)

    assert outcome.status == UnwrapStatus.FAILED
    assert outcome.error == UnwrapError.RELEASE_FAILED
    assert outcome.detail == "reverted"
    assert mock_destination.publish_calls == []

    record = await store.get_request(Direction.BURN_TO_UNWRAP, entry.tx_hash, 0)
    assert record.status == "failed"
    assert record.error == "release_failed"
    assert record.result_tx_hash == outcome.release_tx_hash


async def test_fee_refresh_failure_does_not_undo_release(
    unwrap_relay, store, mock_origin, mock_destination,
):
    mock_origin.gas_price_error = TimeoutError("gas price timeout")
    entry = make_burn_log(token_id=7)
    mock_destination.set_confirmations(entry.tx_hash, 25)

    outcome = await unwrap_relay.handle(entry)

    assert outcome.status == UnwrapStatus.RELEASED
    assert outcome.released
    assert outcome.fee_wei is None
    record = await store.get_request(Direction.BURN_TO_UNWRAP, entry.tx_hash, 0)
    assert record.status == "released"


async def test_fee_publish_failure_does_not_undo_release(
    unwrap_relay, store, mock_destination,
):
    mock_destination.publish_succeeds = False
    entry = make_burn_log(token_id=7)
    mock_destination.set_confirmations(entry.tx_hash, 25)

    outcome = await unwrap_relay.handle(entry)

    assert outcome.status == UnwrapStatus.RELEASED
    assert await store.get_latest_fee_quote() is None
