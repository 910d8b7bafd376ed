"""
Import API - push a single menu feed document
"""
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from cafeteria.database import get_db
from cafeteria.exceptions import StorageError, ValidationError
from cafeteria.services.menu_importer import ImportReport, MenuImporter

router = APIRouter()


@router.post("", response_model=ImportReport)
async def import_menu_document(
    document: Any = Body(...),
    db: AsyncSession = Depends(get_db),
):
    """Import one feed document (one location, date and period)."""
    try:
        return await MenuImporter(db).import_document(document)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))
