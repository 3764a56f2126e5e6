from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import datetime
from uuid import UUID
from decimal import Decimal

ProductStatus = Literal["active", "inactive", "sold_out", "discontinued"]
OrderStatus = Literal["pending", "confirmed", "shipped", "delivered", "cancelled", "refunded"]
OrderPaymentStatus = Literal["unpaid", "paid", "refunded"]


class ProductCreate(BaseModel):
    """Schema for listing a product on the marketplace"""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=100)
    product_type: Optional[str] = Field(None, max_length=100)
    price: Decimal = Field(..., gt=0)
    quantity: Decimal = Field(..., gt=0)
    unit: str = Field(..., min_length=1, max_length=50)
    image_url: Optional[str] = Field(None, max_length=1024)
    farm_id: Optional[UUID] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    product_type: Optional[str] = Field(None, max_length=100)
    price: Optional[Decimal] = Field(None, gt=0)
    quantity: Optional[Decimal] = Field(None, ge=0)
    unit: Optional[str] = Field(None, min_length=1, max_length=50)
    image_url: Optional[str] = Field(None, max_length=1024)
    status: Optional[ProductStatus] = None


class ProductResponse(BaseModel):
    id: UUID
    seller_id: UUID
    farm_id: Optional[UUID]
    name: str
    description: Optional[str]
    category: str
    product_type: Optional[str]
    price: Decimal
    quantity: Decimal
    unit: str
    image_url: Optional[str]
    status: str
    rating: Optional[Decimal]
    review_count: int
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class ProductList(BaseModel):
    products: list[ProductResponse]
    total: int
    page: int
    page_size: int


class CartItemAdd(BaseModel):
    product_id: UUID
    quantity: Decimal = Field(..., gt=0)


class CartItemUpdate(BaseModel):
    quantity: Decimal = Field(..., gt=0)


class CartItemResponse(BaseModel):
    id: UUID
    product_id: UUID
    product_name: str
    seller_id: UUID
    unit: str
    unit_price: Decimal
    quantity: Decimal
    subtotal: Decimal


class CartResponse(BaseModel):
    items: list[CartItemResponse]
    total: Decimal


class OrderItemCreate(BaseModel):
    product_id: UUID
    quantity: Decimal = Field(..., gt=0)


class OrderCreate(BaseModel):
    """Schema for placing an order with one seller"""
    seller_id: UUID
    items: list[OrderItemCreate] = Field(..., min_length=1)
    delivery_address: str = Field(..., min_length=1)
    notes: Optional[str] = None


class CheckoutRequest(BaseModel):
    delivery_address: str = Field(..., min_length=1)
    notes: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    payment_status: Optional[OrderPaymentStatus] = None


class OrderItemResponse(BaseModel):
    id: UUID
    product_id: UUID
    quantity: Decimal
    unit_price: Decimal
    subtotal: Decimal

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: UUID
    order_number: str
    buyer_id: UUID
    seller_id: UUID
    total_amount: Decimal
    status: str
    payment_status: str
    delivery_address: Optional[str]
    notes: Optional[str]
    items: list[OrderItemResponse] = []
    created_at: datetime
    updated_at: Optional[datetime]


class OrderList(BaseModel):
    orders: list[OrderResponse]
    total: int
    page: int
    page_size: int
