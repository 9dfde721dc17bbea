"""
Application layer - Use cases, DTOs, service factories and the scheduler.

This layer orchestrates business logic by:
1. Defining request/response DTOs for API contracts
2. Implementing use cases that coordinate core services
3. Providing factory functions for dependency injection
4. Running the recalc queue drain and end-of-day sweep in the background
"""

from stockledger.application.dto.requests import (
    CascadeRequest,
    CheckAvailabilityRequest,
    EnqueueRecalcRequest,
    TriggerJobRequest,
)
from stockledger.application.scheduler import Scheduler, get_scheduler, reset_scheduler
from stockledger.application.services import (
    get_availability_checker,
    get_cascade_recalculator,
    get_company_registry,
    get_snapshot_validator,
    reset_services,
)
from stockledger.application.use_cases import (
    CheckAvailabilityUseCase,
    DrainRecalcQueueUseCase,
    EndOfDaySweepUseCase,
    EnqueueRecalcUseCase,
)

__all__ = [
    # Request DTOs
    "CheckAvailabilityRequest",
    "EnqueueRecalcRequest",
    "CascadeRequest",
    "TriggerJobRequest",
    # Use Cases
    "CheckAvailabilityUseCase",
    "EnqueueRecalcUseCase",
    "DrainRecalcQueueUseCase",
    "EndOfDaySweepUseCase",
    # Scheduler
    "Scheduler",
    "get_scheduler",
    "reset_scheduler",
    # Service factories
    "get_availability_checker",
    "get_cascade_recalculator",
    "get_company_registry",
    "get_snapshot_validator",
    "reset_services",
]
