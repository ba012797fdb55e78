import json
from decimal import Decimal
from typing import Tuple

from budget_core.domain import Category, to_money

CATEGORY_ICONS = {
    "gold": "💍",
    "stock": "📈",
    "sip": "💰",
    "petrol": "⛽",
    "room-rent": "🏠",
    "groceries": "🛒",
    "food": "🍔",
    "shopping": "🛍️",
    "skin-care": "🧴",
    "trip": "✈️",
    "movie": "🎬",
    "unknown-expenses": "❓",
}

DEFAULT_CATEGORIES: Tuple[Category, ...] = (
    Category("gold", "Gold", CATEGORY_ICONS["gold"]),
    Category("stock", "Stock", CATEGORY_ICONS["stock"]),
    Category("sip", "SIP", CATEGORY_ICONS["sip"]),
    Category("petrol", "Petrol", CATEGORY_ICONS["petrol"]),
    Category("room-rent", "Room Rent", CATEGORY_ICONS["room-rent"]),
    Category("groceries", "Groceries", CATEGORY_ICONS["groceries"]),
    Category("food", "Food", CATEGORY_ICONS["food"]),
    Category("shopping", "Shopping", CATEGORY_ICONS["shopping"]),
    Category("skin-care", "Skin Care", CATEGORY_ICONS["skin-care"]),
    Category("trip", "Trip", CATEGORY_ICONS["trip"]),
    Category("movie", "Movie", CATEGORY_ICONS["movie"]),
    Category("unknown-expenses", "Unknown Expenses", CATEGORY_ICONS["unknown-expenses"]),
)


def load_catalog(path: str) -> Tuple[Category, ...]:
    """Read a category seed file: {"categories": [{"id", "name", "icon"?, "budget"?}]}."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return tuple(
        Category(
            id=c["id"],
            name=c.get("name", c["id"]),
            icon=c.get("icon", CATEGORY_ICONS.get(c["id"], "")),
            budget=max(to_money(c.get("budget")), Decimal("0")),
        )
        for c in data["categories"]
    )


def format_currency(amount) -> str:
    return f"₹{to_money(amount):,.2f}"
