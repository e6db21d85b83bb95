"""Query helpers over a fetched product list."""

from typing import Literal

from catalog.models import Product, Rating

SortKey = Literal["title", "price", "rating"]


def filter_products(products: list[Product], query: str) -> list[Product]:
    """Case-insensitive match on title, category or description."""
    q = query.strip().lower()
    if not q:
        return list(products)

    return [
        p
        for p in products
        if q in p.title.lower()
        or q in p.category.lower()
        or q in p.description.lower()
    ]


def sort_products(
    products: list[Product],
    by: SortKey = "title",
    order: Literal["asc", "desc"] = "asc",
) -> list[Product]:
    keys = {
        "title": lambda p: p.title.lower(),
        "price": lambda p: p.price,
        "rating": lambda p: p.rating.rate,
    }
    if by not in keys:
        raise ValueError(f"Unknown sort key: {by}")
    return sorted(products, key=keys[by], reverse=order == "desc")


def unique_categories(products: list[Product]) -> list[str]:
    return sorted({p.category for p in products})


def format_price(price: float) -> str:
    return f"${price:.2f}"


def format_rating(rating: Rating) -> str:
    return f"{rating.rate:.1f} ({rating.count} reviews)"
