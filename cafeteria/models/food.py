"""
Food catalog models: master dish records and their nutrition values.

A Food is independent of when or where it is served. Nutrients are keyed by
(name, unit) so "Sodium/mg" and "Sodium/g" never get coerced into each other.
"""
from sqlalchemy import Column, Integer, String, Text, Float, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from cafeteria.database import Base


class Food(Base):
    """Master record for a distinct dish"""
    __tablename__ = "foods"

    id = Column(Integer, primary_key=True, index=True)
    mrn = Column(Integer, nullable=True)  # numeric recipe code
    mrn_full = Column(String, unique=True, nullable=True)  # full recipe code, preferred match key
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    portion = Column(String, nullable=True)
    qty = Column(String, nullable=True)
    ingredients = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)  # only written by image enrichment
    nutrition_source_id = Column(String, nullable=True)

    # Relationships
    nutrient_values = relationship(
        "FoodNutrient",
        back_populates="food",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_foods_name_portion", "name", "portion"),
    )


class Nutrient(Base):
    """Nutrient type, e.g. ("Calories", "kcal")"""
    __tablename__ = "nutrients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    unit = Column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("name", "unit", name="uq_nutrient_name_unit"),
    )


class FoodNutrient(Base):
    """One nutrient value for one food"""
    __tablename__ = "food_nutrients"

    food_id = Column(Integer, ForeignKey("foods.id", ondelete="CASCADE"), primary_key=True)
    nutrient_id = Column(Integer, ForeignKey("nutrients.id", ondelete="CASCADE"), primary_key=True)
    value_numeric = Column(Float, nullable=True)
    value_raw = Column(String, nullable=True)  # feed text, kept even when not numeric ("-")

    # Relationships
    food = relationship("Food", back_populates="nutrient_values")
    nutrient = relationship("Nutrient", lazy="joined")
