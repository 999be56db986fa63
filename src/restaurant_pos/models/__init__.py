"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .ingredient import Ingredient
from .recipe import Recipe, RecipeIngredient
from .production_record import ProductionRecord
from .product import Product
from .sale import Sale

__all__ = [
    "Base",
    "BaseModel",
    "Ingredient",
    "Recipe",
    "RecipeIngredient",
    "ProductionRecord",
    "Product",
    "Sale",
]
