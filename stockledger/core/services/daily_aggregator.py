"""
Daily movement aggregation.

One aggregator reads every movement ledger for an item-day. The ledgers are
injected, so the same code serves snapshot calculation and the live
availability path.
"""

import asyncio
from collections.abc import Mapping
from datetime import date

from stockledger.config import get_logger
from stockledger.core.entities.snapshot import MovementKind, MovementTotals
from stockledger.core.exceptions import ConfigurationError, LedgerQueryError, StockLedgerError
from stockledger.core.interfaces.ledger import IMovementLedger

logger = get_logger(__name__)


class DailyAggregator:
    """Sums the movement ledgers for one item on one day."""

    def __init__(self, ledgers: Mapping[MovementKind, IMovementLedger]) -> None:
        missing = [kind.value for kind in MovementKind if kind not in ledgers]
        if missing:
            raise ConfigurationError(
                f"Missing movement ledgers: {', '.join(missing)}",
                details={"missing": missing},
            )
        self._ledgers = dict(ledgers)

    async def aggregate(
        self,
        company_id: int,
        item_type: str,
        item_code: str,
        day: date,
        exclude_transaction_id: str | None = None,
    ) -> MovementTotals:
        """
        Read every ledger for the item-day.

        Raises:
            LedgerQueryError: If any ledger read fails.
        """
        kinds = list(self._ledgers)
        try:
            values = await asyncio.gather(
                *(
                    self._ledgers[kind].read_day_total(
                        company_id,
                        item_type,
                        item_code,
                        day,
                        exclude_transaction_id=exclude_transaction_id,
                    )
                    for kind in kinds
                )
            )
        except LedgerQueryError:
            raise
        except StockLedgerError as e:
            raise LedgerQueryError("aggregate", e.message) from e
        except Exception as e:
            logger.error(
                "ledger_read_failed",
                company_id=company_id,
                item_code=item_code,
                day=day.isoformat(),
                error=str(e),
            )
            raise LedgerQueryError("aggregate", str(e)) from e

        return MovementTotals.from_kinds(dict(zip(kinds, values, strict=True)))
