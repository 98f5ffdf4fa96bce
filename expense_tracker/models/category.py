from enum import Enum


class Category(str, Enum):
    """Spending categories offered to users."""

    FOOD = "Food"
    TRANSPORTATION = "Transportation"
    HOUSING = "Housing"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"
    UTILITIES = "Utilities"
    HEALTHCARE = "Healthcare"
    EDUCATION = "Education"
    TRAVEL = "Travel"
    OTHER = "Other"


DEFAULT_CATEGORY = Category.FOOD
