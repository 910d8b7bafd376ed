"""
Foods API - image URL updates from the enrichment and upload collaborators
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from cafeteria.database import get_db
from cafeteria.exceptions import NotFoundError, StorageError
from cafeteria.services.store import MenuStore

router = APIRouter()


class ImageUrlUpdate(BaseModel):
    image_url: Optional[str] = None


class FoodImageResponse(BaseModel):
    id: int
    name: str
    image_url: Optional[str] = None

    class Config:
        from_attributes = True


@router.put("/{food_id}/image-url", response_model=FoodImageResponse)
async def update_food_image_url(
    food_id: int,
    data: ImageUrlUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        food = await MenuStore(db).set_food_image_url(food_id, data.image_url)
        if not food:
            raise NotFoundError(f"Food {food_id} not found")
        await db.commit()
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        await db.rollback()
        raise HTTPException(status_code=500, detail=str(e))

    return FoodImageResponse.model_validate(food)
