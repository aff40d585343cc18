"""
Order fulfillment workflow.

Matches an incoming stock delivery to an open order, stamps the order as
fulfilled and records the stock movement (a Product_Warehouse row). All the
reads and writes run in the caller's session and are committed together, or
rolled back together on any failure.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from .errors import (
    BusinessRuleViolation,
    FulfillmentError,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from .models import Order, Product, ProductWarehouse, Warehouse
from .schemas import WarehouseRequest

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the way the schema stores it."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def validate_amount(amount: int) -> None:
    if amount <= 0:
        raise ValidationError("Amount must be greater than 0")


def find_valid_order(db: Session, product_id: int, amount: int, created_at: datetime) -> Optional[Order]:
    """Most recent order for this product and exact amount created before `created_at`.

    Orders sharing the same CreatedAt come back in whatever order the
    database returns them.
    """
    return (
        db.query(Order)
        .filter(
            Order.product_id == product_id,
            Order.amount == amount,
            Order.created_at < created_at,
        )
        .order_by(Order.created_at.desc())
        .first()
    )


def is_order_fulfilled(db: Session, order_id: int) -> bool:
    movement = db.query(ProductWarehouse.id).filter(ProductWarehouse.order_id == order_id).first()
    return movement is not None


def mark_order_fulfilled(db: Session, order: Order, fulfilled_at: datetime) -> None:
    order.fulfilled_at = fulfilled_at


def calculate_price(product: Product, amount: int) -> Decimal:
    return Decimal(product.price) * amount


def insert_product_warehouse(
    db: Session,
    *,
    warehouse_id: int,
    product_id: int,
    order_id: int,
    amount: int,
    price: Decimal,
    created_at: datetime,
) -> int:
    movement = ProductWarehouse(
        warehouse_id=warehouse_id,
        product_id=product_id,
        order_id=order_id,
        amount=amount,
        price=price,
        created_at=created_at,
    )
    db.add(movement)
    # Flush so the database assigns IdProductWarehouse before commit.
    db.flush()
    return movement.id


def fulfill_order(db: Session, request: WarehouseRequest) -> int:
    """Fulfil the matching order and return the new Product_Warehouse id.

    Raises ValidationError before touching the database when the amount is not
    positive. Every other failure rolls the session back first: taxonomy errors
    propagate as they are, anything else becomes an InfrastructureError.
    """
    validate_amount(request.amount)
    requested_at = to_naive_utc(request.created_at)

    try:
        # 1. Both referenced rows must exist.
        product = db.get(Product, request.id_product)
        warehouse = db.get(Warehouse, request.id_warehouse)
        if product is None or warehouse is None:
            raise NotFoundError("Product or Warehouse not found")

        # 2. Find the order this delivery answers.
        order = find_valid_order(db, request.id_product, request.amount, requested_at)
        if order is None:
            raise BusinessRuleViolation("No valid order found for this product")

        order_id = order.id

        # 3. An order is matched to at most one stock movement.
        if is_order_fulfilled(db, order_id):
            raise BusinessRuleViolation("Order has already been fulfilled")

        # 4. Stamp the order.
        now = utcnow()
        mark_order_fulfilled(db, order, now)

        # 5. Price and record the movement.
        price = calculate_price(product, request.amount)
        movement_id = insert_product_warehouse(
            db,
            warehouse_id=request.id_warehouse,
            product_id=request.id_product,
            order_id=order_id,
            amount=request.amount,
            price=price,
            created_at=now,
        )

        db.commit()
    except FulfillmentError as e:
        db.rollback()
        logger.warning(
            "Fulfillment rejected for product=%s warehouse=%s amount=%s: %s",
            request.id_product, request.id_warehouse, request.amount, e.message,
        )
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Fulfillment transaction failed, rolled back")
        raise InfrastructureError(f"Transaction failed: {e}") from e

    logger.info(
        "Order %s fulfilled into warehouse %s as movement %s (price %s)",
        order_id, request.id_warehouse, movement_id, price,
    )
    return movement_id
