from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, delete
from decimal import Decimal
from typing import Optional, Literal
from uuid import UUID
import logging

from farmkonnect.api.core.database import get_db
from farmkonnect.api.core.security import get_current_user_id
from farmkonnect.api.models.marketplace import Product, CartItem, Order, OrderItem
from farmkonnect.api.schemas.marketplace import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductList,
    CartItemAdd,
    CartItemUpdate,
    CartItemResponse,
    CartResponse,
    OrderCreate,
    CheckoutRequest,
    OrderStatusUpdate,
    OrderResponse,
    OrderItemResponse,
    OrderList,
)
from farmkonnect.api.services.farms import get_owned_farm
from farmkonnect.api.services.orders import (
    can_transition,
    line_subtotal,
    order_total,
    generate_order_number,
)
from farmkonnect.api.services.push import notify_user
from farmkonnect.api.config import settings

router = APIRouter()
logger = logging.getLogger(__name__)


async def _get_product(db: AsyncSession, product_id: UUID) -> Product:
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )
    return product


async def _get_own_product(db: AsyncSession, product_id: UUID, user_id: str) -> Product:
    product = await _get_product(db, product_id)
    if product.seller_id != UUID(user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only modify your own products"
        )
    return product


async def _order_response(db: AsyncSession, order: Order) -> OrderResponse:
    result = await db.execute(select(OrderItem).where(OrderItem.order_id == order.id))
    items = [OrderItemResponse.model_validate(item) for item in result.scalars().all()]
    return OrderResponse(
        id=order.id,
        order_number=order.order_number,
        buyer_id=order.buyer_id,
        seller_id=order.seller_id,
        total_amount=order.total_amount,
        status=order.status,
        payment_status=order.payment_status,
        delivery_address=order.delivery_address,
        notes=order.notes,
        items=items,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


async def _place_order(
    db: AsyncSession,
    buyer_id: UUID,
    seller_id: UUID,
    lines: list[tuple[UUID, Decimal]],
    delivery_address: str,
    notes: Optional[str]
) -> Order:
    """
    Stage an order with its items and reserve stock

    Unit prices are copied from the products at order time. Nothing is
    committed here, so a failure on any line leaves no partial order.
    """
    order = Order(
        buyer_id=buyer_id,
        seller_id=seller_id,
        order_number=generate_order_number(),
        total_amount=Decimal("0.00"),
        status="pending",
        payment_status="unpaid",
        delivery_address=delivery_address,
        notes=notes,
    )
    db.add(order)
    await db.flush()

    priced = []
    for product_id, quantity in lines:
        product = await _get_product(db, product_id)

        if product.seller_id != seller_id:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Product {product_id} is not sold by this seller"
            )
        if product.status != "active":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Product {product.name} is not available"
            )
        if Decimal(product.quantity) < quantity:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Insufficient stock for {product.name}"
            )

        priced.append((product.price, quantity))
        db.add(OrderItem(
            order_id=order.id,
            product_id=product.id,
            quantity=quantity,
            unit_price=product.price,
            subtotal=line_subtotal(product.price, quantity),
        ))

        product.quantity = Decimal(product.quantity) - quantity
        if product.quantity <= 0:
            product.status = "sold_out"

    order.total_amount = order_total(priced)
    return order


# Products

@router.get("/products", response_model=ProductList)
async def list_products(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    category: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=100),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Browse active marketplace listings

    Filters:
    - category: exact category
    - search: case-insensitive substring of the product name
    """
    filters = [Product.status == "active"]
    if category:
        filters.append(Product.category == category)
    if search:
        filters.append(Product.name.ilike(f"%{search}%"))

    total_result = await db.execute(
        select(func.count()).select_from(Product).where(and_(*filters))
    )
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(Product)
        .where(and_(*filters))
        .order_by(Product.created_at.desc())
        .offset(offset)
        .limit(page_size)
    )

    return ProductList(
        products=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/products/mine", response_model=ProductList)
async def list_my_products(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """All of the seller's own listings, whatever their status"""
    condition = Product.seller_id == UUID(user_id)

    total_result = await db.execute(select(func.count()).select_from(Product).where(condition))
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(Product).where(condition).order_by(Product.created_at.desc()).offset(offset).limit(page_size)
    )

    return ProductList(
        products=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    return await _get_product(db, product_id)


@router.post("/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """List a product for sale; the optional farm must belong to the seller"""
    if product_data.farm_id:
        await get_owned_farm(db, product_data.farm_id, user_id)

    product = Product(seller_id=UUID(user_id), status="active", review_count=0, **product_data.model_dump())
    db.add(product)
    await db.commit()
    await db.refresh(product)

    return product


@router.put("/products/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: UUID,
    product_data: ProductUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    product = await _get_own_product(db, product_id, user_id)

    for field, value in product_data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(product, field, value)

    await db.commit()
    await db.refresh(product)

    return product


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Withdraw a product

    The row is kept as discontinued so past orders still reference it.
    """
    product = await _get_own_product(db, product_id, user_id)
    product.status = "discontinued"
    await db.commit()


# Cart

@router.get("/cart", response_model=CartResponse)
async def get_cart(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """The caller's cart with current product prices"""
    result = await db.execute(
        select(CartItem, Product)
        .join(Product, CartItem.product_id == Product.id)
        .where(CartItem.user_id == UUID(user_id))
        .order_by(CartItem.created_at)
    )

    items = []
    total = Decimal("0.00")
    for cart_item, product in result.all():
        subtotal = line_subtotal(product.price, cart_item.quantity)
        total += subtotal
        items.append(CartItemResponse(
            id=cart_item.id,
            product_id=product.id,
            product_name=product.name,
            seller_id=product.seller_id,
            unit=product.unit,
            unit_price=product.price,
            quantity=cart_item.quantity,
            subtotal=subtotal,
        ))

    return CartResponse(items=items, total=total)


@router.post("/cart", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    item: CartItemAdd,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Add a product to the cart; adding it again increases the quantity"""
    product = await _get_product(db, item.product_id)
    if product.status != "active":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Product is not available"
        )

    result = await db.execute(
        select(CartItem).where(
            and_(
                CartItem.user_id == UUID(user_id),
                CartItem.product_id == item.product_id
            )
        )
    )
    existing = result.scalar_one_or_none()

    if existing:
        existing.quantity = Decimal(existing.quantity) + item.quantity
    else:
        db.add(CartItem(user_id=UUID(user_id), product_id=item.product_id, quantity=item.quantity))

    await db.commit()
    return await get_cart(user_id=user_id, db=db)


@router.put("/cart/{item_id}", response_model=CartResponse)
async def update_cart_item(
    item_id: UUID,
    item: CartItemUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(CartItem).where(and_(CartItem.id == item_id, CartItem.user_id == UUID(user_id)))
    )
    cart_item = result.scalar_one_or_none()

    if not cart_item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Cart item not found"
        )

    cart_item.quantity = item.quantity
    await db.commit()
    return await get_cart(user_id=user_id, db=db)


@router.delete("/cart/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_cart(
    item_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        delete(CartItem).where(and_(CartItem.id == item_id, CartItem.user_id == UUID(user_id)))
    )
    if result.rowcount == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Cart item not found"
        )
    await db.commit()


@router.delete("/cart", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cart(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    await db.execute(delete(CartItem).where(CartItem.user_id == UUID(user_id)))
    await db.commit()


# Orders

@router.post("/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Place an order with one seller

    The total is computed from current product prices and stock is reserved.
    """
    buyer_id = UUID(user_id)
    if order_data.seller_id == buyer_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="You cannot order your own products"
        )

    lines = [(item.product_id, item.quantity) for item in order_data.items]
    order = await _place_order(
        db, buyer_id, order_data.seller_id, lines,
        order_data.delivery_address, order_data.notes
    )
    await db.commit()
    await db.refresh(order)

    logger.info(f"Order {order.order_number} placed by {buyer_id}")
    return await _order_response(db, order)


@router.post("/checkout", response_model=list[OrderResponse], status_code=status.HTTP_201_CREATED)
async def checkout(
    body: CheckoutRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Turn the cart into one order per seller and empty it"""
    buyer_id = UUID(user_id)
    result = await db.execute(
        select(CartItem, Product.seller_id)
        .join(Product, CartItem.product_id == Product.id)
        .where(CartItem.user_id == buyer_id)
        .order_by(CartItem.created_at)
    )
    rows = result.all()

    if not rows:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Cart is empty"
        )

    by_seller: dict[UUID, list[tuple[UUID, Decimal]]] = {}
    for cart_item, seller_id in rows:
        by_seller.setdefault(seller_id, []).append((cart_item.product_id, Decimal(cart_item.quantity)))

    if buyer_id in by_seller:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="You cannot order your own products"
        )

    orders = []
    for seller_id, lines in by_seller.items():
        orders.append(await _place_order(db, buyer_id, seller_id, lines, body.delivery_address, body.notes))

    await db.execute(delete(CartItem).where(CartItem.user_id == buyer_id))
    await db.commit()

    responses = []
    for order in orders:
        await db.refresh(order)
        responses.append(await _order_response(db, order))
    return responses


@router.get("/orders", response_model=OrderList)
async def list_orders(
    role: Literal["buyer", "seller"] = "buyer",
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Orders the caller placed (role=buyer) or received (role=seller)"""
    column = Order.buyer_id if role == "buyer" else Order.seller_id
    filters = [column == UUID(user_id)]
    if status_filter:
        filters.append(Order.status == status_filter)

    total_result = await db.execute(select(func.count()).select_from(Order).where(and_(*filters)))
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(Order).where(and_(*filters)).order_by(Order.created_at.desc()).offset(offset).limit(page_size)
    )

    orders = [await _order_response(db, order) for order in result.scalars().all()]
    return OrderList(orders=orders, total=total, page=page, page_size=page_size)


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    order = await db.get(Order, order_id)
    if not order or UUID(user_id) not in (order.buyer_id, order.seller_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found"
        )
    return await _order_response(db, order)


@router.put("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: UUID,
    body: OrderStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Move an order through its lifecycle (seller only)"""
    order = await db.get(Order, order_id)
    if not order or order.seller_id != UUID(user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found"
        )

    if not can_transition(order.status, body.status):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot change order status from {order.status} to {body.status}"
        )

    if body.status == "cancelled":
        await _restore_stock(db, order)

    order.status = body.status
    if body.payment_status:
        order.payment_status = body.payment_status
    await db.commit()
    await db.refresh(order)
    response = await _order_response(db, order)

    await notify_user(
        db, order.buyer_id,
        title=f"Order {order.order_number} {order.status}",
        body=f"Your order {order.order_number} is now {order.status}.",
        notification_type="order_status",
        data={"order_id": str(order.id), "url": "/marketplace/orders"},
    )
    return response


async def _restore_stock(db: AsyncSession, order: Order) -> None:
    result = await db.execute(select(OrderItem).where(OrderItem.order_id == order.id))
    for item in result.scalars().all():
        product = await db.get(Product, item.product_id)
        if product is None:
            continue
        product.quantity = Decimal(product.quantity) + Decimal(item.quantity)
        if product.status == "sold_out":
            product.status = "active"


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Cancel one of the caller's orders while it is still pending"""
    order = await db.get(Order, order_id)
    if not order or order.buyer_id != UUID(user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found"
        )

    if order.status != "pending":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Only pending orders can be cancelled, this one is {order.status}"
        )

    await _restore_stock(db, order)
    order.status = "cancelled"
    await db.commit()
    await db.refresh(order)

    return await _order_response(db, order)
