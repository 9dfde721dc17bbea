"""API route modules."""

from stockledger.api.routes.health import router as health_router
from stockledger.api.routes.jobs import router as jobs_router
from stockledger.api.routes.recalc import router as recalc_router
from stockledger.api.routes.stock import router as stock_router

__all__ = [
    "health_router",
    "stock_router",
    "recalc_router",
    "jobs_router",
]
