"""
Sale model for point-of-sale transactions.

A sale consumes prepared portions of a product's recipe in exchange for
revenue. Deleting a sale is a refund.
"""

from sqlalchemy import (
    Column,
    Integer,
    Float,
    Text,
    DateTime,
    ForeignKey,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from restaurant_pos.utils.datetime_utils import utc_now


class Sale(BaseModel):
    """
    Sale model.

    Attributes:
        product_id: Foreign key to the Product sold
        quantity: Units sold (>= 1)
        unit_price: Price charged per unit, defaults to the product price
        timestamp: When the sale happened
        notes: Optional notes
    """

    __tablename__ = "sales"

    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=utc_now)
    notes = Column(Text, nullable=True)

    product = relationship("Product", back_populates="sales", lazy="joined")

    __table_args__ = (
        Index("idx_sale_product", "product_id"),
        Index("idx_sale_timestamp", "timestamp"),
        CheckConstraint("quantity >= 1", name="ck_sale_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_sale_unit_price_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of sale."""
        return (
            f"Sale(id={self.id}, product_id={self.product_id}, "
            f"quantity={self.quantity}, unit_price={self.unit_price})"
        )

    @property
    def total_price(self) -> float:
        """quantity × unit_price"""
        return (self.quantity or 0) * (self.unit_price or 0.0)

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert sale to dictionary.

        Args:
            include_relationships: If True, include the product name

        Returns:
            Dictionary representation with total_price
        """
        result = super().to_dict(False)
        result["total_price"] = self.total_price

        if include_relationships and self.product is not None:
            result["product_name"] = self.product.name

        return result
