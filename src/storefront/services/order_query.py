"""Read path for a customer's orders"""
from sqlalchemy import select, func
from sqlalchemy.orm import Session, selectinload
from storefront.models.order import Order, OrderItem
from storefront.services.errors import OrderNotFound
from typing import List, Tuple
from opentelemetry import trace
import math
import logging

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def total_pages(total_count: int, limit: int) -> int:
    return math.ceil(total_count / limit)


class OrderQueryService:
    """Every query is scoped to the requesting user"""

    @staticmethod
    def list_orders(db: Session, user_id: int, page: int = 1, limit: int = 10) -> Tuple[List[Order], int]:
        """Get one page of the user's orders, newest first"""
        with tracer.start_as_current_span("order_query.list_orders") as span:
            span.set_attribute("user.id", user_id)
            span.set_attribute("page", page)

            total = db.execute(
                select(func.count(Order.id)).where(Order.user_id == user_id)
            ).scalar_one()

            orders = db.execute(
                select(Order)
                .where(Order.user_id == user_id)
                .order_by(Order.created_at.desc(), Order.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .options(selectinload(Order.items))
            ).scalars().all()

            span.set_attribute("orders.total", total)
            span.set_attribute("orders.returned", len(orders))

            return list(orders), total

    @staticmethod
    def get_order(db: Session, user_id: int, order_id: str) -> Order:
        """Get one of the user's orders with its items and products"""
        with tracer.start_as_current_span("order_query.get_order") as span:
            span.set_attribute("order.id", order_id)

            order = db.execute(
                select(Order)
                .where(Order.id == order_id, Order.user_id == user_id)
                .options(selectinload(Order.items).selectinload(OrderItem.product))
            ).scalar_one_or_none()

            if order is None:
                # Someone else's order looks exactly like a missing one
                logger.info(f"Order {order_id} not found for user {user_id}")
                raise OrderNotFound()

            return order
