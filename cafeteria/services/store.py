"""
Menu store - normalized persistence for the menu catalog and feedback.

Every write goes through the backend's native conflict clause where one
exists, so the existence check and the insert cannot race. Methods flush but
never commit: the caller owns the transaction.
"""
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cafeteria.exceptions import StorageError
from cafeteria.models import Location, Period, Category, Food, Nutrient, FoodNutrient, MenuItem, Feedback
from cafeteria.utils.db_compat import dialect_insert, equals_or_null


@dataclass
class FoodDescriptor:
    """Descriptive fields of a dish as delivered by a feed"""
    name: str
    mrn: Optional[int] = None
    mrn_full: Optional[str] = None
    description: Optional[str] = None
    portion: Optional[str] = None
    qty: Optional[str] = None
    ingredients: Optional[str] = None
    nutrition_source_id: Optional[str] = None

    def refreshable_fields(self) -> dict:
        """Fields overwritten in place when a reimport matches an existing food."""
        return {
            "name": self.name,
            "description": self.description or "",
            "portion": self.portion or "",
            "qty": self.qty,
            "ingredients": self.ingredients or "",
        }


class MenuStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _guard(self, operation: str):
        try:
            yield
        except SQLAlchemyError as e:
            raise StorageError(f"{operation} failed: {e}") from e

    async def _scalar(self, stmt):
        result = await self.db.execute(stmt.execution_options(populate_existing=True))
        return result.scalars().first()

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    async def find_location(self, external_id: str) -> Optional[Location]:
        async with self._guard("find_location"):
            return await self._scalar(select(Location).where(Location.external_id == external_id))

    async def create_location(self, external_id: str, name: Optional[str] = None) -> Location:
        """Insert a location; an existing row with the same external id wins."""
        async with self._guard("create_location"):
            stmt = (
                dialect_insert(self.db, Location.__table__)
                .values(external_id=external_id, name=name)
                .on_conflict_do_nothing(index_elements=["external_id"])
            )
            await self.db.execute(stmt)
            return await self._scalar(select(Location).where(Location.external_id == external_id))

    # ------------------------------------------------------------------
    # Periods and categories
    # ------------------------------------------------------------------

    async def find_or_create_period(self, external_id: Optional[str], name: str) -> Period:
        async with self._guard("find_or_create_period"):
            if external_id:
                stmt = (
                    dialect_insert(self.db, Period.__table__)
                    .values(external_id=external_id, name=name)
                    .on_conflict_do_nothing(index_elements=["external_id"])
                )
                await self.db.execute(stmt)
                return await self._scalar(select(Period).where(Period.external_id == external_id))

            # Feeds may omit ids for the standard meal slots
            period = await self._scalar(
                select(Period).where(Period.name == name).order_by(Period.id).limit(1)
            )
            if period is None:
                period = Period(external_id=None, name=name)
                self.db.add(period)
                await self.db.flush()
            return period

    async def upsert_category(self, external_id: str, name: str, sort_order: Optional[int] = None) -> Category:
        async with self._guard("upsert_category"):
            stmt = dialect_insert(self.db, Category.__table__).values(
                external_id=external_id, name=name, sort_order=sort_order
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["external_id"],
                set_={"name": stmt.excluded.name, "sort_order": stmt.excluded.sort_order},
            )
            await self.db.execute(stmt)
            return await self._scalar(select(Category).where(Category.external_id == external_id))

    # ------------------------------------------------------------------
    # Foods and nutrients
    # ------------------------------------------------------------------

    async def upsert_food(self, descriptor: FoodDescriptor) -> Food:
        """Match by full recipe code, else by (name, portion).

        A match refreshes the descriptive fields; image_url is never touched.
        """
        fields = descriptor.refreshable_fields()
        async with self._guard("upsert_food"):
            if descriptor.mrn_full:
                stmt = dialect_insert(self.db, Food.__table__).values(
                    mrn=descriptor.mrn,
                    mrn_full=descriptor.mrn_full,
                    image_url=None,
                    nutrition_source_id=descriptor.nutrition_source_id,
                    **fields,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["mrn_full"],
                    set_={key: stmt.excluded[key] for key in fields},
                )
                await self.db.execute(stmt)
                return await self._scalar(select(Food).where(Food.mrn_full == descriptor.mrn_full))

            food = await self._scalar(
                select(Food)
                .where(Food.name == fields["name"], Food.portion == fields["portion"])
                .order_by(Food.id)
                .limit(1)
            )
            if food is None:
                food = Food(
                    mrn=descriptor.mrn,
                    mrn_full=None,
                    image_url=None,
                    nutrition_source_id=descriptor.nutrition_source_id,
                    **fields,
                )
                self.db.add(food)
            else:
                for key, value in fields.items():
                    setattr(food, key, value)
            await self.db.flush()
            return food

    async def upsert_nutrient(self, name: str, unit: Optional[str] = None) -> Nutrient:
        async with self._guard("upsert_nutrient"):
            lookup = select(Nutrient).where(Nutrient.name == name, equals_or_null(Nutrient.unit, unit))
            nutrient = await self._scalar(lookup)
            if nutrient is not None:
                return nutrient

            if unit is None:
                # NULL units never collide in a unique index
                nutrient = Nutrient(name=name, unit=None)
                self.db.add(nutrient)
                await self.db.flush()
                return nutrient

            stmt = (
                dialect_insert(self.db, Nutrient.__table__)
                .values(name=name, unit=unit)
                .on_conflict_do_nothing(index_elements=["name", "unit"])
            )
            await self.db.execute(stmt)
            return await self._scalar(lookup)

    async def set_food_nutrient_value(
        self,
        food_id: int,
        nutrient_id: int,
        value_numeric: Optional[float] = None,
        value_raw: Optional[str] = None,
    ) -> None:
        async with self._guard("set_food_nutrient_value"):
            stmt = dialect_insert(self.db, FoodNutrient.__table__).values(
                food_id=food_id,
                nutrient_id=nutrient_id,
                value_numeric=value_numeric,
                value_raw=value_raw,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["food_id", "nutrient_id"],
                set_={
                    "value_numeric": stmt.excluded.value_numeric,
                    "value_raw": stmt.excluded.value_raw,
                },
            )
            await self.db.execute(stmt)

    async def set_food_image_url(self, food_id: int, image_url: Optional[str]) -> Optional[Food]:
        """Owned by image enrichment and uploads; the importer never calls this."""
        async with self._guard("set_food_image_url"):
            food = await self.db.get(Food, food_id)
            if food is None:
                return None
            food.image_url = image_url
            await self.db.flush()
            return food

    # ------------------------------------------------------------------
    # Menu occurrences and feedback
    # ------------------------------------------------------------------

    async def record_menu_occurrence(
        self,
        menu_date: date,
        location_id: int,
        period_id: int,
        category_id: int,
        food_id: int,
        sort_order: Optional[int] = None,
        external_item_id: Optional[str] = None,
    ) -> bool:
        """Returns False when the occurrence already existed (left unchanged)."""
        async with self._guard("record_menu_occurrence"):
            stmt = (
                dialect_insert(self.db, MenuItem.__table__)
                .values(
                    menu_date=menu_date,
                    location_id=location_id,
                    period_id=period_id,
                    category_id=category_id,
                    food_id=food_id,
                    sort_order=sort_order,
                    external_item_id=external_item_id,
                )
                .on_conflict_do_nothing(
                    index_elements=["menu_date", "location_id", "period_id", "category_id", "food_id"]
                )
            )
            result = await self.db.execute(stmt)
            return result.rowcount == 1

    async def append_feedback(
        self,
        food_id: int,
        rating: int,
        user_id: Optional[int] = None,
        comment: Optional[str] = None,
    ) -> Feedback:
        async with self._guard("append_feedback"):
            feedback = Feedback(food_id=food_id, rating=int(rating), user_id=user_id, comment=comment)
            self.db.add(feedback)
            await self.db.flush()
            await self.db.refresh(feedback)
            return feedback
