"""
Pydantic schemas for the order API

JSON bodies use camelCase keys; Python attributes stay snake_case.
"""
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from storefront.models.order import OrderStatus


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ShippingAddress(ApiModel):
    """Structured shipping address; every field is required"""
    model_config = ConfigDict(str_strip_whitespace=True)

    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)


class OrderItemCreate(ApiModel):
    """Schema for one requested order line"""
    product_id: int = Field(..., gt=0, description="Product ID")
    quantity: int = Field(..., gt=0, description="Quantity")


class OrderCreate(ApiModel):
    """Schema for placing an order"""
    items: List[OrderItemCreate] = Field(..., min_length=1, description="At least one item required")
    shipping_address: ShippingAddress


class OrderStatusUpdate(ApiModel):
    """Schema for updating order status"""
    status: OrderStatus


class ProductSummary(ApiModel):
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    price: Decimal
    is_active: bool


class OrderItemResponse(ApiModel):
    """Schema for order item response"""
    id: int
    product_id: int
    quantity: int
    price: Decimal
    created_at: Optional[datetime] = None


class OrderItemDetailResponse(OrderItemResponse):
    product: Optional[ProductSummary] = None


class OrderResponse(ApiModel):
    """Schema for order response"""
    id: str
    user_id: int
    status: OrderStatus
    total: Decimal
    shipping_address: ShippingAddress
    items: List[OrderItemResponse] = []
    status_updated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class OrderDetailResponse(OrderResponse):
    """Order with items and their product details"""
    items: List[OrderItemDetailResponse] = []


class OrderListResponse(ApiModel):
    """One page of the caller's orders"""
    items: List[OrderResponse]
    page: int
    limit: int
    total_pages: int
    total_count: int


class MessageResponse(BaseModel):
    message: str
