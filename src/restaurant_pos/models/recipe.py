"""
Recipe models.

This module contains:
- Recipe: A named combination of ingredient quantities yielding one portion,
  with the number of portions currently prepared and available for sale
- RecipeIngredient: Ordered ingredient lines of a recipe
"""

from sqlalchemy import (
    Column,
    String,
    Float,
    Integer,
    Text,
    ForeignKey,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class Recipe(BaseModel):
    """
    Recipe model.

    Attributes:
        name: Unique recipe name (required)
        instructions: Free-text preparation instructions
        preparation_time: Preparation time in minutes
        image: Optional image path or URL
        prepared_quantity: Portions prepared and not yet sold. Written only by
            the production and sale ledgers.
        version_id: Optimistic concurrency counter, bumped on every update
    """

    __tablename__ = "recipes"

    name = Column(String(100), nullable=False, unique=True)
    instructions = Column(Text, nullable=False, default="")
    preparation_time = Column(Integer, nullable=False, default=0)
    image = Column(String(500), nullable=True)
    prepared_quantity = Column(Float, nullable=False, default=0.0)

    version_id = Column(Integer, nullable=False)

    recipe_ingredients = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeIngredient.position",
        lazy="joined",
    )
    production_records = relationship(
        "ProductionRecord",
        back_populates="recipe",
        order_by="ProductionRecord.created_at.desc()",
        lazy="select",
    )
    products = relationship("Product", back_populates="recipe", lazy="select")

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("idx_recipe_name", "name"),
        CheckConstraint("preparation_time >= 0", name="ck_recipe_prep_time_non_negative"),
        CheckConstraint("prepared_quantity >= 0", name="ck_recipe_prepared_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of recipe."""
        return (
            f"Recipe(id={self.id}, name='{self.name}', "
            f"prepared_quantity={self.prepared_quantity})"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert recipe to dictionary.

        Ingredient lines are always included, in order.

        Args:
            include_relationships: Accepted for signature compatibility

        Returns:
            Dictionary representation
        """
        result = super().to_dict(False)
        result["ingredients"] = [line.to_dict() for line in self.recipe_ingredients]
        return result


class RecipeIngredient(BaseModel):
    """
    Ingredient line of a recipe.

    Attributes:
        recipe_id: Foreign key to Recipe
        ingredient_id: Foreign key to Ingredient
        quantity: Amount of the ingredient (in its stock unit) needed for ONE portion
        position: Order of the line within the recipe
    """

    __tablename__ = "recipe_ingredients"

    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    ingredient_id = Column(
        Integer, ForeignKey("ingredients.id", ondelete="RESTRICT"), nullable=False
    )

    quantity = Column(Float, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    recipe = relationship("Recipe", back_populates="recipe_ingredients")
    ingredient = relationship("Ingredient", back_populates="recipe_ingredients", lazy="joined")

    __table_args__ = (
        Index("idx_recipe_ingredient_recipe", "recipe_id"),
        Index("idx_recipe_ingredient_ingredient", "ingredient_id"),
        CheckConstraint("quantity > 0", name="ck_recipe_ingredient_quantity_positive"),
    )

    def __repr__(self) -> str:
        """String representation of recipe ingredient."""
        return (
            f"RecipeIngredient(recipe_id={self.recipe_id}, "
            f"ingredient_id={self.ingredient_id}, quantity={self.quantity})"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        """Line as a dictionary, with the ingredient's name and unit."""
        result = {
            "ingredient_id": self.ingredient_id,
            "quantity": self.quantity,
            "position": self.position,
        }
        if self.ingredient is not None:
            result["ingredient_name"] = self.ingredient.name
            result["unit"] = self.ingredient.unit
        return result
