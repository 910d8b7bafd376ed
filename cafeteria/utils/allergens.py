"""
Keyword-based allergen tagging from free-text ingredient lists
"""
from typing import Optional

# Tag -> keywords, in display order
ALLERGEN_KEYWORDS = {
    "Egg": ["egg"],
    "Milk/Dairy": ["milk", "cheese", "butter", "cream"],
    "Gluten/Wheat": ["wheat", "gluten", "flour"],
    "Soy": ["soy"],
    "Tree Nuts": ["almond", "walnut", "pecan", "cashew", "hazelnut", "pistachio"],
    "Peanuts": ["peanut"],
    "Fish": ["fish", "salmon", "tuna", "cod"],
    "Shellfish": ["shrimp", "crab", "lobster", "shellfish"],
    "Sesame": ["sesame"],
}


def get_allergy_tags(ingredients: Optional[str]) -> list[str]:
    """Return allergen tags whose keywords appear in the ingredients text"""
    if not ingredients:
        return []
    text = ingredients.lower()
    return [
        tag for tag, keywords in ALLERGEN_KEYWORDS.items()
        if any(keyword in text for keyword in keywords)
    ]
