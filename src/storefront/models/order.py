"""
Order database models
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, JSON, ForeignKey, CheckConstraint,
    Enum as SQLEnum
)
from sqlalchemy.orm import relationship
from storefront.db.database import Base, utcnow
import enum
import uuid


def new_order_id() -> str:
    return str(uuid.uuid4())


class OrderStatus(str, enum.Enum):
    """Order status enum"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Forward-only moves; cancelled is terminal and reachable before completion
STATUS_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}


class Order(Base):
    """Order model"""
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("total >= 0", name="order_total_check"),
    )

    id = Column(String(36), primary_key=True, default=new_order_id)
    user_id = Column(Integer, nullable=False, index=True)
    status = Column(
        SQLEnum(OrderStatus, name="order_status", values_callable=lambda e: [s.value for s in e]),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )
    total = Column(Numeric(10, 2), nullable=False)
    shipping_address = Column(JSON, nullable=False)

    status_updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.id"
    )

    def can_transition_to(self, status: OrderStatus) -> bool:
        return status in STATUS_TRANSITIONS[self.status]

    def __repr__(self):
        return f"<Order(id={self.id}, status={self.status}, total={self.total})>"


class OrderItem(Base):
    """Order line with the unit price frozen at checkout"""
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="quantity_check"),
        CheckConstraint("price >= 0", name="order_item_price_check"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    def __repr__(self):
        return f"<OrderItem(id={self.id}, product_id={self.product_id}, qty={self.quantity})>"
