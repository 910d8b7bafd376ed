"""
Menu feed document schemas and value parsing.

A feed document covers one location, one date and one period. Categories and
items are kept as raw entries at the document level and validated one at a time
by the importer, so a single malformed entry cannot reject the whole file.
"""
import math
from datetime import date
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field, field_validator

from cafeteria.config import get_settings

settings = get_settings()


def _text_or_none(value: Any) -> Any:
    """Feeds are loose about ids and codes; accept numbers where text is expected."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


class FeedNutrient(BaseModel):
    name: str = Field(min_length=1)
    uom: Optional[str] = None
    value_numeric: Optional[str] = Field(default=None, alias="valueNumeric")
    value: Optional[str] = None

    class Config:
        populate_by_name = True

    @field_validator("value_numeric", "value", mode="before")
    @classmethod
    def _keep_value_text(cls, value: Any) -> Any:
        # JSON numbers keep the text the feed sent: 650 stays "650"
        if isinstance(value, bool):
            return None
        return _text_or_none(value)


class FeedItem(BaseModel):
    name: str = Field(min_length=1)
    id: Optional[str] = None
    mrn: Optional[int] = None
    mrn_full: Optional[str] = Field(default=None, alias="mrnFull")
    desc: Optional[str] = None
    portion: Optional[str] = None
    qty: Optional[str] = None
    ingredients: Optional[str] = None
    sort_order: Optional[int] = Field(default=None, alias="sortOrder")
    nutrients: list[FeedNutrient] = []

    class Config:
        populate_by_name = True

    @field_validator("id", "mrn_full", "portion", "qty", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _text_or_none(value)

    @field_validator("mrn", mode="before")
    @classmethod
    def _lenient_mrn(cls, value: Any) -> Optional[int]:
        if value in (None, ""):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("item name must not be blank")
        return value


class FeedCategory(BaseModel):
    id: str
    name: str = Field(min_length=1)
    sort_order: Optional[int] = Field(default=None, alias="sortOrder")
    items: list[Any] = []

    class Config:
        populate_by_name = True

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _text_or_none(value)


class FeedPeriod(BaseModel):
    id: Optional[str] = None
    name: str = Field(min_length=1)
    categories: list[Any] = []

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _text_or_none(value)


class MenuDocument(BaseModel):
    """One feed file: a single location, date and period"""
    location_id: str = Field(alias="locationId", min_length=1)
    menu_date: date = Field(alias="date")
    period: FeedPeriod

    class Config:
        populate_by_name = True

    @field_validator("location_id", mode="before")
    @classmethod
    def _coerce_location(cls, value: Any) -> Any:
        return _text_or_none(value)


def parse_numeric(value: Any, sentinels: Optional[Iterable[str]] = None) -> Optional[float]:
    """Float value of a nutrient amount, or None for sentinels and junk."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        missing = settings.MISSING_VALUE_SENTINELS if sentinels is None else sentinels
        if not text or text in missing:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def parse_nutrient_value(entry: FeedNutrient) -> tuple[Optional[float], Optional[str]]:
    """Split a nutrient entry into (numeric value, raw text).

    The raw text is always kept so "-" survives alongside a NULL number.
    """
    raw = entry.value if entry.value is not None else entry.value_numeric
    raw_text = None if raw is None else str(raw)
    candidate = entry.value_numeric if entry.value_numeric is not None else entry.value
    return parse_numeric(candidate), raw_text
