"""
Order aggregate construction

Validates a checkout request, reserves stock through the inventory ledger and
assembles the Order with its OrderItems. Nothing here commits.
"""
from sqlalchemy.orm import Session
from storefront.models.order import Order, OrderItem, OrderStatus
from storefront.services.errors import ValidationError
from storefront.services.inventory import InventoryLedger, RequestedItem
from storefront.services.pricing import order_total
from typing import Any, Dict, List, Mapping, Optional, Sequence
from opentelemetry import trace
import logging

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ADDRESS_FIELDS = ("street", "city", "state", "zipCode", "country")


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_items(items: Sequence[RequestedItem]) -> List[RequestedItem]:
    if not items:
        raise ValidationError("Order must contain at least one item")

    validated = []
    for index, item in enumerate(items):
        product_id, quantity = item
        if not _is_positive_int(product_id):
            raise ValidationError(f"items[{index}].productId must be a positive integer")
        if not _is_positive_int(quantity):
            raise ValidationError(f"items[{index}].quantity must be a positive integer")
        validated.append(RequestedItem(product_id, quantity))
    return validated


def validate_shipping_address(address: Mapping[str, Any]) -> Dict[str, str]:
    if not isinstance(address, Mapping):
        raise ValidationError("shippingAddress is required")

    cleaned = {}
    for field in ADDRESS_FIELDS:
        value = address.get(field)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"shippingAddress.{field} is required")
        cleaned[field] = value.strip()
    return cleaned


class OrderAggregateBuilder:
    """Builds uncommitted order aggregates"""

    def __init__(self, ledger: Optional[InventoryLedger] = None):
        self.ledger = ledger or InventoryLedger()

    def validate(self, items: Sequence[RequestedItem], shipping_address: Mapping[str, Any]):
        """Check request shape without touching storage"""
        return validate_items(items), validate_shipping_address(shipping_address)

    def build(
        self,
        db: Session,
        user_id: int,
        items: Sequence[RequestedItem],
        shipping_address: Mapping[str, Any]
    ) -> Order:
        """
        Reserve stock and assemble the order aggregate

        Duplicate product ids are kept as independent lines.

        Raises:
            ValidationError, ProductNotFound, InsufficientStock
        """
        with tracer.start_as_current_span("order_builder.build") as span:
            requested, address = self.validate(items, shipping_address)
            span.set_attribute("user.id", user_id)
            span.set_attribute("items.count", len(requested))

            lines = self.ledger.check_and_reserve(db, requested)
            total = order_total(lines)
            span.set_attribute("order.total_amount", float(total))

            order = Order(
                user_id=user_id,
                status=OrderStatus.PENDING,
                total=total,
                shipping_address=address,
                items=[
                    OrderItem(
                        product_id=line.product_id,
                        quantity=line.quantity,
                        price=line.unit_price
                    )
                    for line in lines
                ]
            )

            db.add(order)
            db.flush()

            logger.info(f"Built order {order.id} for user {user_id}: {len(lines)} lines, total {total}")
            return order
