"""
Product database model
"""
from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, DateTime, CheckConstraint
from storefront.db.database import Base, utcnow


class Product(Base):
    """Catalog product; stock is owned by the inventory ledger"""
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price >= 0", name="price_check"),
        CheckConstraint("stock >= 0", name="stock_check"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String(100), nullable=False, default="", index=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Product(id={self.id}, name={self.name}, stock={self.stock})>"
