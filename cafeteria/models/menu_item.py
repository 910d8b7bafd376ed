"""
Menu item model - one appearance of a food on a given day
"""
from sqlalchemy import Column, Integer, String, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from cafeteria.database import Base


class MenuItem(Base):
    """A food served at a location, period and category on a date"""
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    menu_date = Column(Date, nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    period_id = Column(Integer, ForeignKey("periods.id"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    food_id = Column(Integer, ForeignKey("foods.id"), nullable=False)
    sort_order = Column(Integer, nullable=True)
    external_item_id = Column(String, nullable=True)

    # Relationships
    location = relationship("Location")
    period = relationship("Period")
    category = relationship("Category")
    food = relationship("Food")

    __table_args__ = (
        UniqueConstraint(
            "menu_date", "location_id", "period_id", "category_id", "food_id",
            name="uq_menu_item_occurrence",
        ),
    )
