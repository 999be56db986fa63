"""
ProductionRecord model for tracking recipe preparation.

This module contains the ProductionRecord model, an append-only log entry
written each time portions of a recipe are prepared.
"""

from sqlalchemy import (
    Column,
    Integer,
    Float,
    Text,
    ForeignKey,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class ProductionRecord(BaseModel):
    """
    ProductionRecord model.

    Immutable once created. Creating one is the only way a recipe's
    prepared quantity goes up.

    Attributes:
        recipe_id: Foreign key to Recipe that was prepared
        quantity: Portions prepared (must be > 0, may be fractional)
        notes: Optional production notes
    """

    __tablename__ = "production_records"

    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="RESTRICT"), nullable=False)

    quantity = Column(Float, nullable=False)
    notes = Column(Text, nullable=False, default="")

    recipe = relationship("Recipe", back_populates="production_records")

    __table_args__ = (
        Index("idx_production_recipe", "recipe_id"),
        Index("idx_production_created_at", "created_at"),
        CheckConstraint("quantity > 0", name="ck_production_quantity_positive"),
    )

    def __repr__(self) -> str:
        """String representation of production record."""
        return (
            f"ProductionRecord(id={self.id}, recipe_id={self.recipe_id}, "
            f"quantity={self.quantity})"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert production record to dictionary.

        Args:
            include_relationships: If True, include the recipe name

        Returns:
            Dictionary representation
        """
        result = super().to_dict(False)

        if include_relationships and self.recipe is not None:
            result["recipe_name"] = self.recipe.name

        return result
