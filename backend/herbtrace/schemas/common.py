"""Common schemas used across the application."""

from typing import Generic, Literal, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

QualityGrade = Literal["A", "B", "C", "D"]


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated response wrapper.

    Usage:
        response_model=PaginatedResponse[LotSummary]

    Returns:
        {
            "items": [...],
            "total": 150,
            "limit": 50,
            "offset": 0
        }
    """
    items: list[T]
    total: int
    limit: int
    offset: int


class DigitalSignature(BaseModel):
    """Informational signature metadata; never cryptographically verified."""
    signature: str
    timestamp: str | None = None
    verified: bool = False
