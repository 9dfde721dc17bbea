"""Application use cases."""

from stockledger.application.use_cases.check_availability import CheckAvailabilityUseCase
from stockledger.application.use_cases.drain_recalc_queue import (
    DrainRecalcQueueUseCase,
    DrainResult,
)
from stockledger.application.use_cases.end_of_day_sweep import (
    EndOfDaySweepUseCase,
    SweepResult,
)
from stockledger.application.use_cases.enqueue_recalc import EnqueueRecalcUseCase

__all__ = [
    "CheckAvailabilityUseCase",
    "EnqueueRecalcUseCase",
    "DrainRecalcQueueUseCase",
    "DrainResult",
    "EndOfDaySweepUseCase",
    "SweepResult",
]
