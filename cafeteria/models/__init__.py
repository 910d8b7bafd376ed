from cafeteria.models.location import Location
from cafeteria.models.period import Period
from cafeteria.models.category import Category
from cafeteria.models.food import Food, Nutrient, FoodNutrient
from cafeteria.models.menu_item import MenuItem
from cafeteria.models.feedback import Feedback, Rating

__all__ = [
    "Location",
    "Period",
    "Category",
    "Food",
    "Nutrient",
    "FoodNutrient",
    "MenuItem",
    "Feedback",
    "Rating",
]
