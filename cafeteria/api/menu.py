"""
Menu API - browsable menu by date and period
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from cafeteria.database import get_db
from cafeteria.services.menu_queries import (
    MenuRow,
    get_menu_for_date,
    group_menu,
    list_menu_dates,
    pick_display_date,
    pick_period,
)

router = APIRouter()


class MenuCategory(BaseModel):
    name: str
    items: list[MenuRow]


class MenuPeriod(BaseModel):
    name: str
    categories: list[MenuCategory]


class MenuResponse(BaseModel):
    selected_date: date
    selected_period: str
    dates: list[date]
    allergy_tags: list[str]
    periods: list[MenuPeriod]


@router.get("/dates", response_model=list[date])
async def get_menu_dates(db: AsyncSession = Depends(get_db)):
    """Dates that have a menu, newest first."""
    return await list_menu_dates(db)


@router.get("", response_model=MenuResponse)
async def get_menu(
    menu_date: Optional[date] = Query(None, alias="date"),
    period: Optional[str] = Query(None),
    location_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Menu for a date grouped by period and category, with vote counts."""
    dates = await list_menu_dates(db)
    selected_date = pick_display_date(dates, requested=menu_date)

    rows = await get_menu_for_date(db, selected_date, location_id=location_id)
    grouped = group_menu(rows)

    return MenuResponse(
        selected_date=selected_date,
        selected_period=pick_period(list(grouped.keys()), requested=period),
        dates=dates,
        allergy_tags=sorted({tag for row in rows for tag in row.allergy_tags}),
        periods=[
            MenuPeriod(
                name=period_name,
                categories=[
                    MenuCategory(name=category_name, items=items)
                    for category_name, items in categories.items()
                ],
            )
            for period_name, categories in grouped.items()
        ],
    )
