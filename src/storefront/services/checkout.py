"""
Checkout transaction coordinator

Runs order validation, stock reservation and persistence as one unit of work
and schedules the confirmation email once the order is committed.
"""
from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from storefront.db.database import transaction
from storefront.models.order import Order, OrderItem
from storefront.services.auth import AuthenticatedIdentity
from storefront.services.errors import OrderServiceError, from_storage_error
from storefront.services.inventory import RequestedItem
from storefront.services.notifier import EmailNotifier
from storefront.services.order_builder import OrderAggregateBuilder
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence, Set
from opentelemetry import trace
import asyncio
import enum
import logging

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class CheckoutStage(str, enum.Enum):
    STARTED = "started"
    VALIDATING = "validating"
    RESERVING = "reserving"
    PERSISTING = "persisting"
    COMMITTED = "committed"
    ABORTED = "aborted"


class CheckoutCoordinator:
    """Places orders atomically"""

    def __init__(
        self,
        notifier: EmailNotifier,
        builder: Optional[OrderAggregateBuilder] = None,
        lock_timeout_ms: Optional[int] = None
    ):
        self.notifier = notifier
        self.builder = builder or OrderAggregateBuilder()
        self.lock_timeout_ms = lock_timeout_ms
        self._pending: Set[asyncio.Task] = set()

    def place_order(
        self,
        db: Session,
        identity: AuthenticatedIdentity,
        items: Sequence[RequestedItem],
        shipping_address: Mapping[str, Any],
        background_tasks: Optional[BackgroundTasks] = None
    ) -> Order:
        """
        Place an order for the caller

        Process:
        1. Validate the request (no storage access)
        2. Lock the products and reserve stock
        3. Persist order and items, commit
        4. Send the confirmation email, as a background task when a runner is
           given and inline otherwise

        Any failure before the commit rolls back every stock decrement and
        row written by this checkout.
        """
        with tracer.start_as_current_span("checkout.place_order") as span:
            span.set_attribute("user.id", identity.id)
            span.set_attribute("items.count", len(items))
            stage = self._advance(span, identity, CheckoutStage.STARTED)

            try:
                stage = self._advance(span, identity, CheckoutStage.VALIDATING)
                requested, address = self.builder.validate(items, shipping_address)

                with transaction(db, self.lock_timeout_ms):
                    stage = self._advance(span, identity, CheckoutStage.RESERVING)
                    order = self.builder.build(db, identity.id, requested, address)
                    stage = self._advance(span, identity, CheckoutStage.PERSISTING)
                    order_id, total = order.id, order.total
            except OrderServiceError as e:
                self._abort(span, identity, stage, e)
                raise
            except SQLAlchemyError as e:
                self._abort(span, identity, stage, e)
                logger.error(f"Storage failure during checkout: {e}", exc_info=True)
                raise from_storage_error(e, "Failed to create order. Please try again.") from e

            self._advance(span, identity, CheckoutStage.COMMITTED)
            span.set_attribute("order.id", order_id)
            span.set_attribute("order.total_amount", float(total))
            logger.info(f"Order {order_id} committed for user {identity.id}, total {total}")

            if background_tasks is not None:
                background_tasks.add_task(self.send_confirmation, identity.email, order_id, total)
            else:
                self._send_inline(identity.email, order_id, total)

            return self._load(db, order_id)

    async def send_confirmation(self, email: str, order_id: str, total: Decimal) -> bool:
        """Send the order confirmation; failures are logged, never raised"""
        try:
            sent = await self.notifier.send_order_confirmation(email, order_id, total)
        except Exception as e:
            logger.warning(f"Order {order_id} committed but confirmation email failed: {e}")
            return False

        if sent:
            logger.info(f"Confirmation for order {order_id} sent to {email}")
        return sent

    def _send_inline(self, email: str, order_id: str, total: Decimal):
        """Deliver the confirmation without a background task runner"""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.send_confirmation(email, order_id, total))
            return

        task = loop.create_task(self.send_confirmation(email, order_id, total))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @staticmethod
    def _advance(span, identity: AuthenticatedIdentity, stage: CheckoutStage) -> CheckoutStage:
        span.set_attribute("checkout.stage", stage.value)
        logger.debug(f"Checkout for user {identity.id}: {stage.value}")
        return stage

    @staticmethod
    def _abort(span, identity: AuthenticatedIdentity, stage: CheckoutStage, error: Exception):
        span.set_attribute("checkout.stage", CheckoutStage.ABORTED.value)
        span.set_attribute("checkout.failed_stage", stage.value)
        logger.warning(f"Checkout aborted for user {identity.id} while {stage.value}: {error}")

    @staticmethod
    def _load(db: Session, order_id: str) -> Order:
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.items).selectinload(OrderItem.product))
            .execution_options(populate_existing=True)
        )
        return db.execute(stmt).scalar_one()
