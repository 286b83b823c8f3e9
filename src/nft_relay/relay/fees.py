"""Fee oracle - prices the relayer's next origin-chain release."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from nft_relay.interfaces.chain import DestinationChain, OriginChain
from nft_relay.interfaces.store import StateStore
from nft_relay.models.config import (
    BASE_TRANSFER_GAS_UNITS,
    MARGIN_GAS_UNITS,
    TRANSFER_GAS_UNITS,
)
from nft_relay.models.records import FeeQuote

log = logging.getLogger(__name__)


class FeeOracle:
    """Computes and publishes the unwrap fee.

    fee = gas_price * (transfer + base transfer + margin gas units)

    The quote itself is pure; the gas price is sampled live from the
    origin chain at refresh time and logged with each quote, so any
    published fee can be reproduced from its input.
    """

    def __init__(
        self,
        transfer_gas_units: int = TRANSFER_GAS_UNITS,
        base_transfer_gas_units: int = BASE_TRANSFER_GAS_UNITS,
        margin_gas_units: int = MARGIN_GAS_UNITS,
    ) -> None:
        units = (transfer_gas_units, base_transfer_gas_units, margin_gas_units)
        if any(u < 0 for u in units):
            raise ValueError("gas unit estimates must be non-negative")
        self._fixed_gas_units = sum(units)

    @property
    def fixed_gas_units(self) -> int:
        return self._fixed_gas_units

    def quote(self, current_gas_price_wei: int) -> FeeQuote:
        if current_gas_price_wei < 0:
            raise ValueError(f"gas price must be non-negative, got {current_gas_price_wei}")
        return FeeQuote(
            gas_price_wei=current_gas_price_wei,
            fixed_gas_units=self._fixed_gas_units,
            computed_fee_wei=current_gas_price_wei * self._fixed_gas_units,
            computed_at=datetime.now(timezone.utc).isoformat(),
        )

    async def refresh(
        self,
        origin: OriginChain,
        destination: DestinationChain,
        store: StateStore,
    ) -> FeeQuote | None:
        """Sample origin gas price, quote, and publish the fee on the destination bridge.

        Returns the published quote, or None if any step failed. Never raises
        for chain errors: a failed refresh leaves the previous fee in place.
        """
        try:
            gas_price = await origin.gas_price()
        except Exception as exc:
            log.warning("Fee refresh skipped, gas price read failed: %s", exc)
            await store.log_activity("fee_refresh_failed", f"Gas price read failed: {exc}")
            return None

        quote = self.quote(gas_price)
        log.info(
            "Fee quote: %d wei/gas x %d gas = %d wei",
            quote.gas_price_wei, quote.fixed_gas_units, quote.computed_fee_wei,
        )

        result = await destination.publish_fee(quote.computed_fee_wei)
        if not result.success:
            log.warning("Fee publish failed: %s", result.error)
            await store.log_activity(
                "fee_refresh_failed",
                f"Publishing fee {quote.computed_fee_wei} wei failed: {result.error}",
                tx_hash=result.tx_hash,
            )
            return None

        await store.save_fee_quote(quote, result.tx_hash)
        await store.log_activity(
            "fee_published",
            f"Unwrap fee set to {quote.computed_fee_wei} wei "
            f"(gas price {quote.gas_price_wei} wei)",
            tx_hash=result.tx_hash,
        )
        return quote
