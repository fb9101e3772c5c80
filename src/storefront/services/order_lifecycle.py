"""
Order status changes after checkout

Cancelling an order returns its quantities to stock in the same transaction
that flips the status.
"""
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from storefront.db.database import transaction, utcnow
from storefront.models.order import Order, OrderItem, OrderStatus
from storefront.services.auth import AuthenticatedIdentity, can_manage_orders
from storefront.services.errors import (
    OrderNotFound, InvalidStatusTransition, PermissionDenied,
    from_storage_error
)
from storefront.services.inventory import InventoryLedger, RequestedItem
from typing import Optional
from opentelemetry import trace
import logging

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class OrderLifecycle:
    """Status transitions: pending -> processing -> completed, or cancelled before completion"""

    def __init__(self, ledger: Optional[InventoryLedger] = None, lock_timeout_ms: Optional[int] = None):
        self.ledger = ledger or InventoryLedger()
        self.lock_timeout_ms = lock_timeout_ms

    def cancel(self, db: Session, identity: AuthenticatedIdentity, order_id: str) -> Order:
        """Cancel one of the caller's own orders"""
        return self._transition(db, order_id, OrderStatus.CANCELLED, owner_id=identity.id)

    def update_status(
        self,
        db: Session,
        identity: AuthenticatedIdentity,
        order_id: str,
        status: OrderStatus
    ) -> Order:
        """Move any order to a new status (admin only)"""
        if not can_manage_orders(identity):
            logger.warning(f"User {identity.id} tried to change status of order {order_id}")
            raise PermissionDenied("Admin access required")
        return self._transition(db, order_id, status)

    def _transition(
        self,
        db: Session,
        order_id: str,
        status: OrderStatus,
        owner_id: Optional[int] = None
    ) -> Order:
        with tracer.start_as_current_span("order_lifecycle.transition") as span:
            span.set_attribute("order.id", order_id)
            span.set_attribute("status.new", status.value)

            try:
                with transaction(db, self.lock_timeout_ms):
                    stmt = (
                        select(Order)
                        .where(Order.id == order_id)
                        .with_for_update()
                        .execution_options(populate_existing=True)
                    )
                    if owner_id is not None:
                        stmt = stmt.where(Order.user_id == owner_id)
                    order = db.execute(stmt).scalar_one_or_none()
                    if order is None:
                        raise OrderNotFound()

                    old_status = order.status
                    if not order.can_transition_to(status):
                        raise InvalidStatusTransition(
                            f"Cannot change order status from {old_status.value} to {status.value}"
                        )

                    if status == OrderStatus.CANCELLED:
                        self.ledger.release(
                            db, [RequestedItem(item.product_id, item.quantity) for item in order.items]
                        )

                    order.status = status
                    order.status_updated_at = utcnow()
            except SQLAlchemyError as e:
                logger.error(f"Storage failure updating order {order_id}: {e}", exc_info=True)
                raise from_storage_error(e, "Failed to update order. Please try again.") from e

            span.set_attribute("status.old", old_status.value)
            logger.info(f"Order {order_id} status updated: {old_status.value} -> {status.value}")

            return db.execute(
                select(Order)
                .where(Order.id == order_id)
                .options(selectinload(Order.items).selectinload(OrderItem.product))
                .execution_options(populate_existing=True)
            ).scalar_one()
