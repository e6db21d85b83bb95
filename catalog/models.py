"""
Catalog domain types using Pydantic models.

Product validation mirrors the upstream payload contract: a record that
fails any check is rejected as a whole.
"""

import math
from enum import Enum
from typing import Annotated, Any

from pydantic import (
    AnyUrl,
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    TypeAdapter,
    field_validator,
)

_url_adapter = TypeAdapter(AnyUrl)

StrictText = Annotated[str, StringConstraints(strip_whitespace=True, strict=True)]
NonEmptyText = Annotated[
    str, StringConstraints(strip_whitespace=True, strict=True, min_length=1)
]


class ThemeMode(str, Enum):
    """Persisted colour scheme preference."""

    LIGHT = "light"
    DARK = "dark"


class Rating(BaseModel):
    """Aggregated customer rating."""

    model_config = ConfigDict(frozen=True)

    rate: float = Field(ge=0, le=5, strict=True, allow_inf_nan=False)
    count: int = Field(ge=0)

    @field_validator("rate")
    @classmethod
    def _round_rate(cls, value: float) -> float:
        return round(value, 1)

    @field_validator("count", mode="before")
    @classmethod
    def _floor_count(cls, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("rating count must be a number")
        if not math.isfinite(value):
            raise ValueError("rating count must be finite")
        return math.floor(value)


class Product(BaseModel):
    """Normalized product record."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(gt=0, strict=True)
    title: NonEmptyText
    price: float = Field(ge=0, strict=True, allow_inf_nan=False)
    description: StrictText
    category: StrictText
    image: str = Field(strict=True)
    rating: Rating

    @field_validator("price")
    @classmethod
    def _round_price(cls, value: float) -> float:
        return round(value, 2)

    @field_validator("image")
    @classmethod
    def _check_image_url(cls, value: str) -> str:
        try:
            _url_adapter.validate_python(value)
        except ValueError as e:
            raise ValueError(f"image must be a valid URL: {value!r}") from e
        return value
