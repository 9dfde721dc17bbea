"""
Snapshot integrity checks.

Reports problems in stored snapshots without changing them.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from stockledger.config import get_logger
from stockledger.core.exceptions import ValidationError
from stockledger.core.interfaces.snapshot_store import ISnapshotStore
from stockledger.core.services.balance_formula import closing_for_item_type
from stockledger.core.services.cascade_recalculator import date_range

logger = get_logger(__name__)

# Longest span find_missing_dates will walk
MAX_GAP_SCAN_DAYS = 366


class IssueKind(str, Enum):
    BALANCE_MISMATCH = "balance_mismatch"
    NEGATIVE_STOCK = "negative_stock"


@dataclass
class ValidationIssue:
    kind: IssueKind
    item_type: str
    item_code: str
    snapshot_date: date
    message: str
    stored: float | None = None
    expected: float | None = None


@dataclass
class ValidationReport:
    company_id: int
    snapshot_date: date
    checked: int = 0
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues


class SnapshotValidator:
    """Cross-checks stored snapshots against the balance formula."""

    def __init__(self, snapshot_store: ISnapshotStore, epsilon: float = 0.01) -> None:
        self._snapshots = snapshot_store
        self._epsilon = epsilon

    async def validate(self, company_id: int, snapshot_date: date) -> ValidationReport:
        """Check every snapshot of a company on one date."""
        snapshots = await self._snapshots.list_for_date(company_id, snapshot_date)
        report = ValidationReport(
            company_id=company_id, snapshot_date=snapshot_date, checked=len(snapshots)
        )

        for s in snapshots:
            expected = closing_for_item_type(s.item_type, s.opening_balance, s.totals)
            if abs(expected - s.closing_balance) > self._epsilon:
                report.issues.append(
                    ValidationIssue(
                        kind=IssueKind.BALANCE_MISMATCH,
                        item_type=s.item_type,
                        item_code=s.item_code,
                        snapshot_date=s.snapshot_date,
                        message=(
                            f"Closing balance {s.closing_balance} differs from "
                            f"computed {expected}"
                        ),
                        stored=s.closing_balance,
                        expected=expected,
                    )
                )
                logger.warning(
                    "snapshot_balance_mismatch",
                    company_id=company_id,
                    item_type=s.item_type,
                    item_code=s.item_code,
                    snapshot_date=s.snapshot_date.isoformat(),
                    stored=s.closing_balance,
                    expected=expected,
                )
            if s.closing_balance < 0:
                report.issues.append(
                    ValidationIssue(
                        kind=IssueKind.NEGATIVE_STOCK,
                        item_type=s.item_type,
                        item_code=s.item_code,
                        snapshot_date=s.snapshot_date,
                        message=f"Negative closing balance {s.closing_balance}",
                        stored=s.closing_balance,
                    )
                )

        return report

    async def find_missing_dates(
        self, company_id: int, start: date, end: date
    ) -> list[date]:
        """
        Dates in [start, end] without any snapshot for the company.

        Raises:
            ValidationError: If the range is reversed or longer than MAX_GAP_SCAN_DAYS.
        """
        if end < start:
            raise ValidationError("since", "must not be after snapshot_date", start)
        if (end - start).days + 1 > MAX_GAP_SCAN_DAYS:
            raise ValidationError(
                "since", f"range may span at most {MAX_GAP_SCAN_DAYS} days", start
            )
        present = set(await self._snapshots.list_snapshot_dates(company_id, start, end))
        return [d for d in date_range(start, end) if d not in present]
