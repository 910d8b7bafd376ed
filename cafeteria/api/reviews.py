"""
Reviews API - swipe review items and vote recording
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from cafeteria.config import get_settings
from cafeteria.database import get_db
from cafeteria.exceptions import StorageError
from cafeteria.models import Food, Rating
from cafeteria.services.menu_queries import FeedbackRollup, get_feedback_rollup, get_review_items_for
from cafeteria.services.store import MenuStore
from cafeteria.utils.allergens import get_allergy_tags

router = APIRouter()
settings = get_settings()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class ReviewItem(BaseModel):
    food_id: int
    food_name: str
    ingredients: Optional[str] = None
    image_url: Optional[str] = None
    allergy_tags: list[str] = []


class ReviewItemsResponse(BaseModel):
    menu_date: date
    period: str
    items: list[ReviewItem]


class ReviewCreate(BaseModel):
    food_id: int
    rating: int
    user_id: Optional[int] = None
    comment: Optional[str] = None

    @field_validator("rating")
    @classmethod
    def _known_rating(cls, value: int) -> int:
        if value not in {r.value for r in Rating}:
            raise ValueError("rating must be 1 (up), -1 (down) or 0 (did not try)")
        return value


class ReviewResponse(BaseModel):
    ok: bool = True
    feedback_id: int
    rollup: FeedbackRollup


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/items", response_model=ReviewItemsResponse)
async def list_review_items(
    menu_date: Optional[date] = Query(None, alias="date"),
    period: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Foods served on a date in a period, for the swipe review flow."""
    menu_date = menu_date or date.today()
    period = period or settings.DEFAULT_REVIEW_PERIOD

    foods = await get_review_items_for(db, menu_date, period)
    return ReviewItemsResponse(
        menu_date=menu_date,
        period=period,
        items=[
            ReviewItem(
                food_id=f.id,
                food_name=f.name,
                ingredients=f.ingredients,
                image_url=f.image_url,
                allergy_tags=get_allergy_tags(f.ingredients),
            )
            for f in foods
        ],
    )


@router.post("", response_model=ReviewResponse)
async def record_review(data: ReviewCreate, db: AsyncSession = Depends(get_db)):
    """Record one swipe vote for a food."""
    food = await db.get(Food, data.food_id)
    if not food:
        raise HTTPException(status_code=404, detail="Food not found")

    try:
        feedback = await MenuStore(db).append_feedback(
            data.food_id, data.rating, user_id=data.user_id, comment=data.comment
        )
        await db.commit()
    except StorageError as e:
        await db.rollback()
        raise HTTPException(status_code=500, detail=str(e))

    return ReviewResponse(
        feedback_id=feedback.id,
        rollup=await get_feedback_rollup(db, data.food_id),
    )
