"""
Nutrition API - nutrient facts for a single food
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cafeteria.database import get_db
from cafeteria.models import Food
from cafeteria.services.menu_queries import NutrientValue, get_nutrients_for_food

router = APIRouter()


class NutritionResponse(BaseModel):
    food_name: Optional[str] = None
    nutrients: list[NutrientValue] = []


@router.get("/{food_id}", response_model=NutritionResponse)
async def get_nutrition(food_id: int, db: AsyncSession = Depends(get_db)):
    """Nutrients ordered by name; empty when the food has no nutrition facts."""
    nutrients = await get_nutrients_for_food(db, food_id)
    if not nutrients:
        return NutritionResponse()

    result = await db.execute(select(Food.name).where(Food.id == food_id))
    return NutritionResponse(food_name=result.scalar_one_or_none(), nutrients=nutrients)
