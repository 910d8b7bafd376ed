"""
Read-only menu queries consumed by the API layer.

Missing data is an expected condition (a date with no menu, a food without
nutrition facts), so every query returns an empty result instead of raising.
Feedback rollups are computed from the feedback table on every read.
"""
from datetime import date
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from cafeteria.config import get_settings
from cafeteria.models import Category, Feedback, Food, FoodNutrient, MenuItem, Nutrient, Period, Rating
from cafeteria.utils.allergens import get_allergy_tags

settings = get_settings()


class FeedbackRollup(BaseModel):
    up: int = 0
    down: int = 0
    no_try: int = 0
    total: int = 0


class MenuRow(BaseModel):
    menu_date: date
    location_id: int
    period_name: str
    category_name: str
    category_sort: Optional[int] = None
    item_sort: Optional[int] = None
    food_id: int
    food_name: str
    mrn_full: Optional[str] = None
    ingredients: Optional[str] = None
    image_url: Optional[str] = None
    allergy_tags: list[str] = []
    rollup: FeedbackRollup = FeedbackRollup()


class NutrientValue(BaseModel):
    name: str
    unit: Optional[str] = None
    value_numeric: Optional[float] = None
    value_raw: Optional[str] = None


def _rollup_subquery():
    return (
        select(
            Feedback.food_id.label("food_id"),
            func.sum(case((Feedback.rating == Rating.UP.value, 1), else_=0)).label("up_count"),
            func.sum(case((Feedback.rating == Rating.DOWN.value, 1), else_=0)).label("down_count"),
            func.sum(case((Feedback.rating == Rating.NO_TRY.value, 1), else_=0)).label("notry_count"),
            func.count(Feedback.id).label("total_count"),
        )
        .group_by(Feedback.food_id)
        .subquery()
    )


async def list_menu_dates(db: AsyncSession) -> list[date]:
    """Distinct dates with any menu item, newest first"""
    result = await db.execute(
        select(MenuItem.menu_date).distinct().order_by(MenuItem.menu_date.desc())
    )
    return list(result.scalars().all())


async def get_menu_for_date(
    db: AsyncSession, menu_date: date, location_id: Optional[int] = None
) -> list[MenuRow]:
    """Every menu item served on a date, with feedback counts per food.

    Rows come back ordered by period, category sort order, category name,
    item sort order and food name, ready for group_menu().
    """
    fb = _rollup_subquery()
    query = (
        select(
            MenuItem.menu_date,
            MenuItem.location_id,
            Period.name.label("period_name"),
            Category.name.label("category_name"),
            Category.sort_order.label("category_sort"),
            MenuItem.sort_order.label("item_sort"),
            Food.id.label("food_id"),
            Food.name.label("food_name"),
            Food.mrn_full,
            Food.ingredients,
            Food.image_url,
            fb.c.up_count,
            fb.c.down_count,
            fb.c.notry_count,
            fb.c.total_count,
        )
        .select_from(MenuItem)
        .join(Period, MenuItem.period_id == Period.id)
        .join(Category, MenuItem.category_id == Category.id)
        .join(Food, MenuItem.food_id == Food.id)
        .outerjoin(fb, fb.c.food_id == Food.id)
        .where(MenuItem.menu_date == menu_date)
        .order_by(Period.name, Category.sort_order, Category.name, MenuItem.sort_order, Food.name)
    )
    if location_id is not None:
        query = query.where(MenuItem.location_id == location_id)

    result = await db.execute(query)
    return [
        MenuRow(
            menu_date=row.menu_date,
            location_id=row.location_id,
            period_name=row.period_name,
            category_name=row.category_name,
            category_sort=row.category_sort,
            item_sort=row.item_sort,
            food_id=row.food_id,
            food_name=row.food_name,
            mrn_full=row.mrn_full,
            ingredients=row.ingredients,
            image_url=row.image_url,
            allergy_tags=get_allergy_tags(row.ingredients),
            rollup=FeedbackRollup(
                up=row.up_count or 0,
                down=row.down_count or 0,
                no_try=row.notry_count or 0,
                total=row.total_count or 0,
            ),
        )
        for row in result.all()
    ]


async def get_nutrients_for_food(db: AsyncSession, food_id: int) -> list[NutrientValue]:
    result = await db.execute(
        select(Nutrient.name, Nutrient.unit, FoodNutrient.value_numeric, FoodNutrient.value_raw)
        .select_from(FoodNutrient)
        .join(Nutrient, FoodNutrient.nutrient_id == Nutrient.id)
        .where(FoodNutrient.food_id == food_id)
        .order_by(Nutrient.name, Nutrient.unit)
    )
    return [
        NutrientValue(
            name=row.name,
            unit=row.unit,
            value_numeric=row.value_numeric,
            value_raw=row.value_raw,
        )
        for row in result.all()
    ]


async def get_review_items_for(db: AsyncSession, menu_date: date, period_name: str) -> list[Food]:
    """Distinct foods served on a date in a period, for the swipe review flow"""
    result = await db.execute(
        select(Food)
        .join(MenuItem, MenuItem.food_id == Food.id)
        .join(Period, MenuItem.period_id == Period.id)
        .where(MenuItem.menu_date == menu_date, Period.name == period_name)
        .distinct()
        .order_by(Food.name, Food.id)
    )
    return list(result.scalars().all())


async def get_feedback_rollup(db: AsyncSession, food_id: int) -> FeedbackRollup:
    fb = _rollup_subquery()
    result = await db.execute(select(fb).where(fb.c.food_id == food_id))
    row = result.first()
    if row is None:
        return FeedbackRollup()
    return FeedbackRollup(
        up=row.up_count or 0,
        down=row.down_count or 0,
        no_try=row.notry_count or 0,
        total=row.total_count or 0,
    )


def group_menu(rows: list[MenuRow]) -> dict[str, dict[str, list[MenuRow]]]:
    """Nest rows as period -> category -> items, keeping row order."""
    grouped: dict[str, dict[str, list[MenuRow]]] = {}
    for row in rows:
        grouped.setdefault(row.period_name, {}).setdefault(row.category_name, []).append(row)
    return grouped


def pick_display_date(
    dates: list[date], requested: Optional[date] = None, today: Optional[date] = None
) -> date:
    """Requested date if it has a menu, else today if it has one, else the newest."""
    today = today or date.today()
    if requested is not None and requested in dates:
        return requested
    if today in dates:
        return today
    return dates[0] if dates else today


def pick_period(period_names: list[str], requested: Optional[str] = None) -> str:
    if requested and requested in period_names:
        return requested
    return period_names[0] if period_names else settings.DEFAULT_PERIOD
