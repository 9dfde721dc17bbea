"""Company entity."""

from pydantic import BaseModel


class Company(BaseModel):
    """Tenant whose stock is tracked."""

    id: int
    code: str
    name: str
    is_active: bool = True
