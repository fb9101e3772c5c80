"""
Inventory ledger: product stock checks, reservations and restocks
"""
from sqlalchemy import select, update
from sqlalchemy.orm import Session
from storefront.db.database import utcnow
from storefront.models.product import Product
from storefront.services.errors import ProductNotFound, InsufficientStock
from storefront.services.pricing import LineItem, freeze
from typing import Dict, Iterable, List, NamedTuple, Sequence
from collections import defaultdict
from opentelemetry import trace
import logging

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class RequestedItem(NamedTuple):
    product_id: int
    quantity: int


class InventoryLedger:
    """Stock mutations; every method runs inside the caller's transaction"""

    @staticmethod
    def lock_products(db: Session, product_ids: Iterable[int], active_only: bool = True) -> Dict[int, Product]:
        """
        Load products with row locks held until the transaction ends

        Rows are locked in id order so concurrent checkouts touching the same
        products always queue in the same sequence.
        """
        stmt = (
            select(Product)
            .where(Product.id.in_(set(product_ids)))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if active_only:
            stmt = stmt.where(Product.is_active.is_(True))

        return {product.id: product for product in db.execute(stmt).scalars()}

    @staticmethod
    def check_and_reserve(db: Session, items: Sequence[RequestedItem]) -> List[LineItem]:
        """
        Check availability and decrement stock for every requested line

        Returns:
            One priced line per requested line, in request order

        Raises:
            ProductNotFound: any requested product is missing or inactive
            InsufficientStock: a product cannot cover the requested quantity
        """
        with tracer.start_as_current_span("inventory.check_and_reserve") as span:
            requested_ids = {item.product_id for item in items}
            span.set_attribute("products.count", len(requested_ids))

            products = InventoryLedger.lock_products(db, requested_ids)
            if set(products) != requested_ids:
                missing = sorted(requested_ids - set(products))
                logger.warning(f"Products not found or inactive: {missing}")
                raise ProductNotFound()

            # Repeated product ids stay separate lines but share one stock count
            demand: Dict[int, int] = defaultdict(int)
            lines = []
            for item in items:
                product = products[item.product_id]
                demand[item.product_id] += item.quantity
                if demand[item.product_id] > product.stock:
                    logger.warning(
                        f"Insufficient stock for product {product.id}: "
                        f"requested {demand[item.product_id]}, available {product.stock}"
                    )
                    raise InsufficientStock(product.id, product.name)
                lines.append(freeze(product.id, product.price, item.quantity))

            for line in lines:
                result = db.execute(
                    update(Product)
                    .where(Product.id == line.product_id, Product.stock >= line.quantity)
                    .values(stock=Product.stock - line.quantity, updated_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    # Stock moved underneath the read that authorized this line
                    product = products[line.product_id]
                    logger.warning(f"Stale stock read for product {product.id}, rejecting reservation")
                    raise InsufficientStock(product.id, product.name)

            for product in products.values():
                db.expire(product, ["stock"])

            logger.info(f"Reserved stock for {len(lines)} lines across {len(products)} products")
            return lines

    @staticmethod
    def release(db: Session, items: Iterable[RequestedItem]) -> None:
        """Return reserved quantities to stock (order cancellation)"""
        items = list(items)
        with tracer.start_as_current_span("inventory.release") as span:
            span.set_attribute("lines.count", len(items))

            products = InventoryLedger.lock_products(
                db, [item.product_id for item in items], active_only=False
            )
            for item in items:
                db.execute(
                    update(Product)
                    .where(Product.id == item.product_id)
                    .values(stock=Product.stock + item.quantity, updated_at=utcnow())
                    .execution_options(synchronize_session=False)
                )

            for product in products.values():
                db.expire(product, ["stock"])

            logger.info(f"Released stock for {len(items)} lines")
