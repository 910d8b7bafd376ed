"""
Category model - a station within a period (Grill, Homestyle, ...)
"""
from sqlalchemy import Column, Integer, String
from cafeteria.database import Base


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    sort_order = Column(Integer, nullable=True)  # display order, refreshed on reimport
