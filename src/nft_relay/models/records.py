"""Internal record types for state persistence and operation results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class WrapStatus(str, Enum):
    RECEIVED = "received"
    VERIFIED = "verified"
    METADATA_FETCHED = "metadata_fetched"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    DUPLICATE = "duplicate"  # outcome only, never persisted


class UnwrapStatus(str, Enum):
    DETECTED = "detected"
    AWAITING_FINALITY = "awaiting_finality"
    FINALIZED = "finalized"
    RELEASED = "released"
    FEE_REFRESHED = "fee_refreshed"
    FAILED = "failed"
    DUPLICATE = "duplicate"


class WrapError(str, Enum):
    UNSUPPORTED = "unsupported"
    METADATA_FETCH_FAILED = "metadata_fetch_failed"
    SUBMISSION_FAILED = "submission_failed"


class UnwrapError(str, Enum):
    DECODE_FAILED = "decode_failed"
    FINALITY_TIMEOUT = "finality_timeout"
    RELEASE_FAILED = "release_failed"


@dataclass
class TxResult:
    """Result of a signed transaction submission and its receipt."""

    success: bool
    tx_hash: str | None = None
    block_number: int | None = None
    error: str | None = None


@dataclass
class WrapOutcome:
    """What WrapRelay did with one deposit notification."""

    status: WrapStatus
    token_id: int | None = None
    token_uri: str | None = None
    tx_hash: str | None = None
    error: WrapError | None = None
    detail: str | None = None

    @property
    def success(self) -> bool:
        return self.status == WrapStatus.CONFIRMED


@dataclass
class UnwrapOutcome:
    """What UnwrapRelay did with one burn log."""

    status: UnwrapStatus
    token_id: int | None = None
    recipient: str | None = None
    confirmations: int = 0
    release_tx_hash: str | None = None
    fee_wei: int | None = None
    error: UnwrapError | None = None
    detail: str | None = None

    @property
    def released(self) -> bool:
        return self.status in (UnwrapStatus.RELEASED, UnwrapStatus.FEE_REFRESHED)


@dataclass(frozen=True)
class FeeQuote:
    """Fee for one future origin release, computed from a gas price sample."""

    gas_price_wei: int
    fixed_gas_units: int
    computed_fee_wei: int
    computed_at: str  # ISO 8601


@dataclass
class RequestRecord:
    """A wrap or unwrap request as persisted in the dedup ledger."""

    direction: str
    tx_hash: str
    log_index: int
    contract_address: str
    from_address: str
    to_address: str
    token_id: int
    block_number: int | None
    status: str
    error: str | None = None
    token_uri: str | None = None
    confirmations: int = 0
    result_tx_hash: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ActivityRecord:
    """A single activity log entry."""

    id: int
    event_type: str
    tx_hash: str | None
    token_id: int | None
    message: str
    created_at: str
