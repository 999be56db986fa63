"""
Product model for sellable menu items.

A product wraps a recipe with a sale price and an active flag. Cost,
profit and margin are derived from the recipe on demand and never stored.
"""

from sqlalchemy import Column, String, Float, Integer, Boolean, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class Product(BaseModel):
    """
    Product model.

    Attributes:
        recipe_id: Foreign key to the Recipe this product sells
        name: Display name (required)
        price: Sale price per unit
        is_active: Whether the product can currently be sold
    """

    __tablename__ = "products"

    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="RESTRICT"), nullable=False)

    name = Column(String(100), nullable=False)
    price = Column(Float, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    recipe = relationship("Recipe", back_populates="products", lazy="joined")
    sales = relationship("Sale", back_populates="product", lazy="select")

    __table_args__ = (
        Index("idx_product_name", "name"),
        Index("idx_product_recipe", "recipe_id"),
        Index("idx_product_active", "is_active"),
        CheckConstraint("price >= 0", name="ck_product_price_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of product."""
        return f"Product(id={self.id}, name='{self.name}', price={self.price})"

    @property
    def prepared_quantity(self) -> float:
        """Portions of the underlying recipe available for sale."""
        if self.recipe is None:
            return 0.0
        return self.recipe.prepared_quantity or 0.0

    @property
    def can_sell(self) -> bool:
        """True when the product is active and some portions are prepared."""
        return bool(self.is_active) and self.prepared_quantity > 0
