"""
Dependency injection container for FastAPI.

Provides service instances to route handlers.
"""

from functools import lru_cache

from stockledger.application.scheduler import Scheduler, get_scheduler
from stockledger.application.services import (
    get_cascade_recalculator,
    get_recalc_queue_store,
    get_snapshot_store,
    get_snapshot_validator,
)
from stockledger.application.use_cases import (
    CheckAvailabilityUseCase,
    EnqueueRecalcUseCase,
)
from stockledger.config import Settings, get_settings
from stockledger.core.interfaces import IRecalcQueueStore, ISnapshotStore
from stockledger.core.services import CascadeRecalculator, SnapshotValidator


@lru_cache
def get_app_settings() -> Settings:
    """Get cached application settings."""
    return get_settings()


# Use case dependencies
def get_check_availability_use_case() -> CheckAvailabilityUseCase:
    """Get check availability use case."""
    return CheckAvailabilityUseCase()


def get_enqueue_recalc_use_case() -> EnqueueRecalcUseCase:
    """Get enqueue recalc use case."""
    return EnqueueRecalcUseCase()


# Service dependencies
def get_cascade() -> CascadeRecalculator:
    """Get cascade recalculator."""
    return get_cascade_recalculator()


def get_validator() -> SnapshotValidator:
    """Get snapshot validator."""
    return get_snapshot_validator()


def get_jobs() -> Scheduler:
    """Get the background scheduler."""
    return get_scheduler()


# Store dependencies
def get_snapshots() -> ISnapshotStore:
    """Get snapshot store."""
    return get_snapshot_store()


def get_queue() -> IRecalcQueueStore:
    """Get recalc queue store."""
    return get_recalc_queue_store()
