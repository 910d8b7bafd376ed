"""
Period model (Breakfast, Lunch, Dinner)
"""
from sqlalchemy import Column, Integer, String
from cafeteria.database import Base


class Period(Base):
    __tablename__ = "periods"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String, unique=True, nullable=True)
    name = Column(String, nullable=False, index=True)
