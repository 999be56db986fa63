"""
Ingredient model for raw stocked materials.

This model represents ingredients consumed by recipes, including:
- Basic information (name, unit)
- Stock tracking (quantity, minimum threshold)
- Unit cost used by recipe costing
"""

from sqlalchemy import Column, String, Float, Integer, Index, CheckConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class Ingredient(BaseModel):
    """
    Ingredient model.

    Attributes:
        name: Unique ingredient name (required)
        quantity: Current stock, in ``unit``
        unit: Stock unit (e.g., "g", "ml", "each")
        min_threshold: Stock level at or below which the ingredient is low
        cost_per_unit: Cost of one ``unit`` of stock
        version_id: Optimistic concurrency counter, bumped on every update
    """

    __tablename__ = "ingredients"

    name = Column(String(100), nullable=False, unique=True)
    quantity = Column(Float, nullable=False, default=0.0)
    unit = Column(String(20), nullable=False)
    min_threshold = Column(Float, nullable=False, default=0.0)
    cost_per_unit = Column(Float, nullable=False, default=0.0)

    version_id = Column(Integer, nullable=False)

    recipe_ingredients = relationship("RecipeIngredient", back_populates="ingredient")

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("idx_ingredient_name", "name"),
        CheckConstraint("quantity >= 0", name="ck_ingredient_quantity_non_negative"),
        CheckConstraint("min_threshold >= 0", name="ck_ingredient_threshold_non_negative"),
        CheckConstraint("cost_per_unit >= 0", name="ck_ingredient_cost_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of ingredient."""
        return f"Ingredient(id={self.id}, name='{self.name}', quantity={self.quantity} {self.unit})"

    @property
    def is_low_stock(self) -> bool:
        """True when stock is at or below the minimum threshold."""
        return (self.quantity or 0.0) <= (self.min_threshold or 0.0)

    @property
    def total_value(self) -> float:
        """
        Calculate total stock value.

        Returns:
            quantity × cost_per_unit
        """
        return (self.quantity or 0.0) * (self.cost_per_unit or 0.0)

    def to_dict(self, include_relationships: bool = False) -> dict:
        """Ingredient as a dictionary with is_low_stock and total_value."""
        result = super().to_dict()
        result["is_low_stock"] = self.is_low_stock
        result["total_value"] = self.total_value
        return result
