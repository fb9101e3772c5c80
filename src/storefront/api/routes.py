"""
FastAPI routes for the order service
"""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from storefront.db.database import get_db
from storefront.services.auth import AuthenticatedIdentity, InvalidToken, decode_access_token
from storefront.services.checkout import CheckoutCoordinator
from storefront.services.inventory import RequestedItem
from storefront.services.notifier import EmailNotifier
from storefront.services.order_lifecycle import OrderLifecycle
from storefront.services.order_query import OrderQueryService, total_pages
from storefront.models.schemas import (
    OrderCreate,
    OrderStatusUpdate,
    OrderResponse,
    OrderDetailResponse,
    OrderListResponse,
    MessageResponse
)
from typing import Optional
from storefront.config import settings
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["orders"])

# Email notifier (initialized in main.py)
notifier = None

bearer_scheme = HTTPBearer(auto_error=False)

AUTH_ERRORS = {
    401: {"model": MessageResponse, "description": "Missing or invalid bearer token"},
}
CHECKOUT_ERRORS = {
    **AUTH_ERRORS,
    400: {"model": MessageResponse, "description": "Invalid request, unknown product or insufficient stock"},
    409: {"model": MessageResponse, "description": "Concurrent checkout conflict, retry"},
    503: {"model": MessageResponse, "description": "Stock is locked by another checkout, retry"},
}
ORDER_ERRORS = {
    **AUTH_ERRORS,
    404: {"model": MessageResponse, "description": "Order not found"},
}
TRANSITION_ERRORS = {
    **ORDER_ERRORS,
    409: {"model": MessageResponse, "description": "Status change not allowed"},
    503: {"model": MessageResponse, "description": "Order is locked, retry"},
}


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> AuthenticatedIdentity:
    """Dependency resolving the caller from the bearer token"""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No token provided")
    try:
        return decode_access_token(credentials.credentials)
    except InvalidToken as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))


def get_notifier() -> EmailNotifier:
    """Dependency for the email notifier"""
    return notifier


def get_checkout_coordinator(notifier: EmailNotifier = Depends(get_notifier)) -> CheckoutCoordinator:
    """Dependency for the checkout coordinator"""
    return CheckoutCoordinator(notifier, lock_timeout_ms=settings.lock_timeout_ms)


def get_order_lifecycle() -> OrderLifecycle:
    return OrderLifecycle(lock_timeout_ms=settings.lock_timeout_ms)


@router.post(
    "/orders",
    response_model=OrderDetailResponse,
    status_code=status.HTTP_201_CREATED,
    responses=CHECKOUT_ERRORS
)
def create_order(
    order: OrderCreate,
    background_tasks: BackgroundTasks,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    coordinator: CheckoutCoordinator = Depends(get_checkout_coordinator)
):
    """
    Place an order

    This endpoint:
    1. Validates the request
    2. Locks the products and checks stock
    3. Freezes unit prices and computes the total
    4. Creates the order and its items, decrementing stock, in one transaction
    5. Emails a confirmation after the commit

    - **items**: List of `{productId, quantity}` (at least one required)
    - **shippingAddress**: street, city, state, zipCode, country
    """
    logger.info(f"Creating order for user {identity.id} with {len(order.items)} items")

    return coordinator.place_order(
        db,
        identity,
        [RequestedItem(item.product_id, item.quantity) for item in order.items],
        order.shipping_address.model_dump(by_alias=True),
        background_tasks
    )


@router.get("/orders", response_model=OrderListResponse, responses={**AUTH_ERRORS, 400: {"model": MessageResponse}})
def list_orders(
    page: int = Query(1, ge=1, description="Page number, starting at 1"),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size, description="Orders per page"),
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """
    List the caller's orders, newest first

    - **page**: Page number (default 1)
    - **limit**: Orders per page (default 10)
    """
    logger.info(f"Listing orders for user {identity.id}: page={page}, limit={limit}")

    orders, total = OrderQueryService.list_orders(db, identity.id, page=page, limit=limit)

    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
        total_count=total
    )


@router.get("/orders/{order_id}", response_model=OrderDetailResponse, responses=ORDER_ERRORS)
def get_order(
    order_id: str,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """
    Get one of the caller's orders with items and product details

    - **order_id**: Order ID
    """
    return OrderQueryService.get_order(db, identity.id, order_id)


@router.post("/orders/{order_id}/cancel", response_model=OrderDetailResponse, responses=TRANSITION_ERRORS)
def cancel_order(
    order_id: str,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle)
):
    """
    Cancel one of the caller's orders

    Only pending or processing orders can be cancelled; their items go back
    to stock.
    """
    logger.info(f"User {identity.id} cancelling order {order_id}")
    return lifecycle.cancel(db, identity, order_id)


@router.patch(
    "/orders/{order_id}/status",
    response_model=OrderDetailResponse,
    responses={**TRANSITION_ERRORS, 403: {"model": MessageResponse, "description": "Caller may not change order status"}}
)
def update_order_status(
    order_id: str,
    status_update: OrderStatusUpdate,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle)
):
    """
    Update order status (admin only)

    Allowed moves:
    - pending -> processing
    - processing -> completed
    - pending/processing -> cancelled
    """
    logger.info(f"Updating order {order_id} status to {status_update.status.value}")
    return lifecycle.update_status(db, identity, order_id, status_update.status)
