from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import config
from .errors import (
    AlreadySettled,
    Conflict,
    InsufficientStock,
    InvalidKey,
    NotFound,
    ValidationError,
)
from .helpers import BCRYPT_MAX_BYTES, as_utc_naive, fits_bcrypt, is_valid_email, normalize_email, utcnow
from .models import (
    CheckoutReservation,
    Drop,
    DropAllocation,
    NewsletterSubscriber,
    Order,
    Product,
    ProductVariant,
    User,
)

logger = logging.getLogger(__name__)


# -----------------------------
# Users
# -----------------------------

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    normalized = normalize_email(email)
    if not normalized:
        return None
    return db.query(User).filter(User.email == normalized).first()


def ensure_admin_user(db: Session, email: str, password: str) -> Optional[User]:
    """Create the admin account if it does not exist yet. Returns the new user, or None."""
    from .auth import get_password_hash

    normalized = normalize_email(email)
    if not normalized or not password:
        return None
    if get_user_by_email(db, normalized):
        db.commit()
        return None

    user = User(email=normalized, password_hash=get_password_hash(password), role="admin")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


# -----------------------------
# Products & variants
# -----------------------------

def get_product(db: Session, product_id: int) -> Optional[Product]:
    return db.query(Product).filter(Product.id == product_id).first()


def get_products(db: Session, skip: int = 0, limit: int = 100) -> list[Product]:
    return db.query(Product).order_by(Product.id).offset(skip).limit(limit).all()


def create_product(db: Session, product_data: dict) -> Product:
    variants = product_data.pop("variants", None) or []
    db_product = Product(**product_data)
    for v in variants:
        db_product.variants.append(ProductVariant(**v))
    db.add(db_product)
    db.commit()
    db.refresh(db_product)
    return db_product


def update_product(db: Session, product_id: int, update_data: dict) -> Optional[Product]:
    db_product = get_product(db, product_id)
    if not db_product:
        return None
    for key, value in update_data.items():
        if value is not None:
            setattr(db_product, key, value)
    db.commit()
    db.refresh(db_product)
    return db_product


def delete_product(db: Session, product_id: int) -> Optional[Product]:
    db_product = get_product(db, product_id)
    if db_product:
        db.delete(db_product)
        db.commit()
    return db_product


def get_variant(db: Session, variant_id: int) -> Optional[ProductVariant]:
    return db.query(ProductVariant).filter(ProductVariant.id == variant_id).first()


def create_variant(db: Session, product_id: int, variant_data: dict) -> Optional[ProductVariant]:
    if not get_product(db, product_id):
        return None
    db_variant = ProductVariant(product_id=product_id, **variant_data)
    db.add(db_variant)
    db.commit()
    db.refresh(db_variant)
    return db_variant


def update_variant(db: Session, variant_id: int, update_data: dict) -> Optional[ProductVariant]:
    db_variant = get_variant(db, variant_id)
    if not db_variant:
        return None
    for key, value in update_data.items():
        if value is not None:
            setattr(db_variant, key, value)
    db.commit()
    db.refresh(db_variant)
    return db_variant


def restock_variant(db: Session, variant_id: int, quantity: int) -> Optional[ProductVariant]:
    if quantity <= 0:
        raise ValidationError("quantity must be > 0")
    result = db.execute(
        update(ProductVariant)
        .where(ProductVariant.id == variant_id)
        .values(stock_total=ProductVariant.stock_total + quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        return None
    db.commit()
    db_variant = get_variant(db, variant_id)
    db.refresh(db_variant)
    return db_variant


def delete_variant(db: Session, variant_id: int) -> Optional[ProductVariant]:
    db_variant = get_variant(db, variant_id)
    if db_variant:
        db.delete(db_variant)
        db.commit()
    return db_variant


# -----------------------------
# Drops
# -----------------------------

def get_drop(db: Session, drop_id: int) -> Optional[Drop]:
    return db.query(Drop).filter(Drop.id == drop_id).first()


def get_drops(db: Session) -> list[Drop]:
    return db.query(Drop).order_by(Drop.created_at.desc(), Drop.id.desc()).all()


def create_drop(db: Session, drop_data: dict) -> Drop:
    from .auth import get_password_hash

    key = drop_data.pop("key")
    _check_drop_key(key)
    db_drop = Drop(
        **{
            **drop_data,
            "start_at": as_utc_naive(drop_data["start_at"]),
            "end_at": as_utc_naive(drop_data["end_at"]),
        },
        key_hash=get_password_hash(key),
    )
    db.add(db_drop)
    db.commit()
    db.refresh(db_drop)
    return db_drop


def update_drop(db: Session, drop_id: int, update_data: dict) -> Optional[Drop]:
    from .auth import get_password_hash

    db_drop = get_drop(db, drop_id)
    if not db_drop:
        return None

    key = update_data.pop("key", None)
    if key:
        _check_drop_key(key)
        db_drop.key_hash = get_password_hash(key)
    for key_name in ("start_at", "end_at"):
        if update_data.get(key_name) is not None:
            update_data[key_name] = as_utc_naive(update_data[key_name])
    for name, value in update_data.items():
        if value is not None:
            setattr(db_drop, name, value)

    if db_drop.end_at <= db_drop.start_at:
        db.rollback()
        raise ValidationError("end_at must be after start_at")

    db.commit()
    db.refresh(db_drop)
    return db_drop


def _check_drop_key(key: str) -> None:
    if not key or not fits_bcrypt(key):
        raise ValidationError(f"Drop key must be 1 to {BCRYPT_MAX_BYTES} bytes")


def delete_drop(db: Session, drop_id: int) -> Optional[Drop]:
    db_drop = get_drop(db, drop_id)
    if db_drop:
        db.delete(db_drop)
        db.commit()
    return db_drop


def get_active_drop(db: Session, now: Optional[datetime] = None) -> Optional[Drop]:
    """Return the unprocessed drop whose window contains ``now``.

    Overlapping windows resolve to the drop that started last, then to the
    highest id.
    """
    now = as_utc_naive(now) if now is not None else utcnow()
    return (
        db.query(Drop)
        .filter(
            Drop.start_at <= now,
            Drop.end_at >= now,
            Drop.processed.is_(False),
        )
        .order_by(Drop.start_at.desc(), Drop.id.desc())
        .first()
    )


def verify_drop_key(db: Session, drop_id: int, candidate_key: str) -> bool:
    from .auth import verify_password

    db_drop = get_drop(db, drop_id)
    if not db_drop:
        raise NotFound("Drop not found")
    # a longer candidate can only match on its first 72 bytes
    if not fits_bcrypt(candidate_key) or not verify_password(candidate_key or "", db_drop.key_hash):
        raise InvalidKey("Invalid drop key")
    return True


# -----------------------------
# Allocations
# -----------------------------

def get_allocations(db: Session, drop_id: int) -> list[DropAllocation]:
    return (
        db.query(DropAllocation)
        .filter(DropAllocation.drop_id == drop_id)
        .order_by(DropAllocation.id)
        .all()
    )


def get_allocation(db: Session, drop_id: int, variant_id: int) -> Optional[DropAllocation]:
    return (
        db.query(DropAllocation)
        .filter(
            DropAllocation.drop_id == drop_id,
            DropAllocation.product_variant_id == variant_id,
        )
        .first()
    )


def upsert_allocation(db: Session, drop_id: int, variant_id: int, allocated_stock: int) -> DropAllocation:
    if not get_drop(db, drop_id):
        raise NotFound("Drop not found")
    variant = get_variant(db, variant_id)
    if not variant:
        raise NotFound(f"Variant {variant_id} not found")
    if allocated_stock < 0:
        raise ValidationError("allocated_stock must be >= 0")
    if allocated_stock > variant.stock_total:
        raise ValidationError(
            f"Cannot allocate {allocated_stock} units of variant {variant_id}: "
            f"only {variant.stock_total} in stock"
        )

    allocation = get_allocation(db, drop_id, variant_id)
    if allocation is None:
        allocation = DropAllocation(
            drop_id=drop_id,
            product_variant_id=variant_id,
            allocated_stock=allocated_stock,
        )
        db.add(allocation)
    else:
        allocation.allocated_stock = allocated_stock

    db.commit()
    db.refresh(allocation)
    return allocation


def delete_allocation(db: Session, drop_id: int, variant_id: int) -> Optional[DropAllocation]:
    allocation = get_allocation(db, drop_id, variant_id)
    if not allocation:
        return None
    db.delete(allocation)
    db.commit()
    return allocation


# -----------------------------
# Listings
# -----------------------------

def _group_by_product(rows: Iterable[tuple[Product, ProductVariant, int]]) -> list[dict[str, Any]]:
    grouped: dict[int, dict[str, Any]] = {}
    for product, variant, stock in rows:
        entry = grouped.get(product.id)
        if entry is None:
            entry = {
                "id": product.id,
                "title": product.title,
                "description": product.description,
                "images": list(product.images or []),
                "category": product.category,
                "variants": [],
            }
            grouped[product.id] = entry
        entry["variants"].append(
            {"id": variant.id, "size": variant.size, "price": variant.price, "stock": int(stock)}
        )
    # dicts keep insertion order, so products stay in order of first appearance
    return list(grouped.values())


def list_drop_products(db: Session, drop_id: int) -> list[dict[str, Any]]:
    rows = (
        db.query(Product, ProductVariant, DropAllocation.allocated_stock)
        .join(ProductVariant, ProductVariant.product_id == Product.id)
        .join(DropAllocation, DropAllocation.product_variant_id == ProductVariant.id)
        .filter(DropAllocation.drop_id == drop_id)
        .order_by(DropAllocation.id)
        .all()
    )
    return _group_by_product(rows)


def list_shop_products(db: Session) -> list[dict[str, Any]]:
    rows = (
        db.query(Product, ProductVariant, ProductVariant.stock_total)
        .join(ProductVariant, ProductVariant.product_id == Product.id)
        .filter(ProductVariant.stock_total > 0)
        .order_by(Product.id, ProductVariant.id)
        .all()
    )
    return _group_by_product(rows)


# -----------------------------
# Checkout & stock
# -----------------------------

RESERVATION_HELD = "held"
RESERVATION_AWAITING_PAYMENT = "awaiting_payment"
RESERVATION_SETTLED = "settled"
RESERVATION_RELEASED = "released"

LIVE_RESERVATION = (RESERVATION_HELD, RESERVATION_AWAITING_PAYMENT)

# A held reservation is only swept this long after its Stripe session expired.
RESERVATION_GRACE = timedelta(minutes=5)


@dataclass
class CheckoutLine:
    variant_id: int
    title: str
    size: str
    price: int
    quantity: int
    images: list[str]


def merge_items(items: Iterable[dict[str, Any]]) -> dict[int, int]:
    """Collapse ``[{"variant_id"|"variantId", "quantity"}]`` into ``{variant_id: quantity}``."""
    merged: dict[int, int] = {}
    for item in items:
        raw_id = item.get("variant_id", item.get("variantId"))
        try:
            vid = int(raw_id)
            qty = int(item["quantity"])
        except (KeyError, TypeError, ValueError):
            raise ValidationError("Each item needs an integer variant id and quantity")
        if vid <= 0 or qty <= 0:
            raise ValidationError("Variant id and quantity must be > 0")
        merged[vid] = merged.get(vid, 0) + qty
    if not merged:
        raise ValidationError("At least one item is required")
    return merged


def _require_active_drop(db: Session, drop_id: int, now: datetime) -> Drop:
    db_drop = get_drop(db, drop_id)
    if (
        db_drop is None
        or db_drop.processed
        or not (db_drop.start_at <= now <= db_drop.end_at)
    ):
        raise NotFound("No active drop found")
    return db_drop


def prepare_checkout(
    db: Session,
    items: Iterable[dict[str, Any]],
    drop_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[CheckoutLine]:
    """Resolve the requested lines against the store and pre-check stock.

    Sellable stock is the drop allocation when ``drop_id`` is given, otherwise
    the variant's total. Nothing is written and prices come from the store;
    ``reserve_checkout`` takes the stock for real.
    """
    merged = merge_items(items)
    now = as_utc_naive(now) if now is not None else utcnow()

    try:
        if drop_id:
            _require_active_drop(db, drop_id, now)

        variants = {
            v.id: v
            for v in db.query(ProductVariant).filter(ProductVariant.id.in_(list(merged))).all()
        }
        allocations: dict[int, int] = {}
        if drop_id:
            allocations = {
                a.product_variant_id: a.allocated_stock
                for a in db.query(DropAllocation)
                .filter(
                    DropAllocation.drop_id == drop_id,
                    DropAllocation.product_variant_id.in_(list(merged)),
                )
                .all()
            }

        lines: list[CheckoutLine] = []
        for vid, qty in merged.items():
            variant = variants.get(vid)
            if variant is None:
                raise InsufficientStock(f"Insufficient stock for variant {vid}", variant_id=vid)

            sellable = allocations.get(vid, 0) if drop_id else variant.stock_total
            if qty > sellable:
                raise _short_of(variant.product.title, variant.size, vid)
            lines.append(
                CheckoutLine(
                    variant_id=vid,
                    title=variant.product.title,
                    size=variant.size,
                    price=variant.price,
                    quantity=qty,
                    images=list(variant.product.images or []),
                )
            )
    finally:
        # read-only; the reservation runs in its own write transaction
        db.rollback()

    return lines


def _short_of(title: str, size: str, variant_id: int) -> InsufficientStock:
    return InsufficientStock(f"Insufficient stock for {title} ({size})", variant_id=variant_id)


def _apply_decrements(
    db: Session,
    merged: dict[int, int],
    drop_id: Optional[int],
    *,
    clamp: bool,
) -> list[str]:
    """Decrement stock for each line inside the caller's transaction.

    Every decrement is a conditional UPDATE that only matches while enough
    stock remains, so the stock check and the write are one statement.
    Strict mode raises ``InsufficientStock`` on the first short line; clamp
    mode drops the row to zero and reports the anomaly instead.
    """
    anomalies: list[str] = []

    # stable order so concurrent writers lock rows the same way
    for vid in sorted(merged):
        qty = merged[vid]
        table, column, row_filter = _stock_row(drop_id, vid)
        result = db.execute(
            update(table)
            .where(*row_filter, column >= qty)
            .values({column: column - qty})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            continue

        if not clamp:
            raise InsufficientStock(f"Insufficient stock for variant {vid}", variant_id=vid)

        clamped = db.execute(
            update(table).where(*row_filter).values({column: 0}).execution_options(synchronize_session=False)
        )
        if clamped.rowcount:
            msg = f"stock for variant {vid} (drop={drop_id}) short of {qty}; clamped to 0"
        else:
            msg = f"no stock row for variant {vid} (drop={drop_id})"
        logger.warning("Settlement anomaly: %s", msg)
        anomalies.append(msg)

    return anomalies


def _restore_stock(db: Session, merged: dict[int, int], drop_id: Optional[int]) -> None:
    for vid in sorted(merged):
        table, column, row_filter = _stock_row(drop_id, vid)
        result = db.execute(
            update(table)
            .where(*row_filter)
            .values({column: column + merged[vid]})
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            logger.warning("Released stock for variant %s (drop=%s) has no row to return to", vid, drop_id)


def _stock_row(drop_id: Optional[int], variant_id: int):
    if drop_id:
        return (
            DropAllocation,
            DropAllocation.allocated_stock,
            (DropAllocation.drop_id == drop_id, DropAllocation.product_variant_id == variant_id),
        )
    return ProductVariant, ProductVariant.stock_total, (ProductVariant.id == variant_id,)


def _lines_manifest(items: Iterable[dict[str, Any]]) -> dict[int, int]:
    return {int(i["variant_id"]): int(i["quantity"]) for i in items}


def reserve_checkout(
    db: Session,
    lines: list[CheckoutLine],
    *,
    email: str,
    drop_id: Optional[int] = None,
    hold_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> CheckoutReservation:
    """Take the stock for ``lines`` and record the hold, all or nothing.

    The conditional decrement is both the stock check and the write, so of
    N+1 concurrent checkouts for N units exactly N get a reservation.
    """
    merged = {line.variant_id: line.quantity for line in lines}
    by_id = {line.variant_id: line for line in lines}
    minutes = hold_minutes if hold_minutes is not None else config.CHECKOUT_HOLD_MINUTES
    now = as_utc_naive(now) if now is not None else utcnow()

    try:
        try:
            _apply_decrements(db, merged, drop_id, clamp=False)
        except InsufficientStock as e:
            line = by_id[e.variant_id]
            raise _short_of(line.title, line.size, line.variant_id)

        reservation = CheckoutReservation(
            user_email=normalize_email(email),
            drop_id=drop_id,
            items=[{"variant_id": l.variant_id, "quantity": l.quantity, "price": l.price} for l in lines],
            total_amount=sum(l.price * l.quantity for l in lines),
            status=RESERVATION_HELD,
            expires_at=now + timedelta(minutes=minutes),
        )
        db.add(reservation)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(reservation)
    return reservation


def attach_session(db: Session, reservation_id: int, session_id: str) -> None:
    db.execute(
        update(CheckoutReservation)
        .where(CheckoutReservation.id == reservation_id)
        .values(stripe_session_id=session_id)
        .execution_options(synchronize_session=False)
    )
    db.commit()


def get_reservation(db: Session, reservation_id: int) -> Optional[CheckoutReservation]:
    return db.query(CheckoutReservation).filter(CheckoutReservation.id == reservation_id).first()


def mark_awaiting_payment(db: Session, reservation_id: int) -> bool:
    """Keep a held reservation out of the expiry sweep while an async payment clears."""
    result = db.execute(
        update(CheckoutReservation)
        .where(
            CheckoutReservation.id == reservation_id,
            CheckoutReservation.status == RESERVATION_HELD,
        )
        .values(status=RESERVATION_AWAITING_PAYMENT)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return bool(result.rowcount)


def release_reservation(db: Session, reservation_id: int, *, reason: str) -> bool:
    """Return a live reservation's stock. Releasing twice is a no-op."""
    try:
        claimed = db.execute(
            update(CheckoutReservation)
            .where(
                CheckoutReservation.id == reservation_id,
                CheckoutReservation.status.in_(LIVE_RESERVATION),
            )
            .values(status=RESERVATION_RELEASED)
            .execution_options(synchronize_session=False)
        )
        if not claimed.rowcount:
            db.rollback()
            return False

        reservation = get_reservation(db, reservation_id)
        _restore_stock(db, _lines_manifest(reservation.items), reservation.drop_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Released reservation %s (%s)", reservation_id, reason)
    return True


def release_expired_reservations(db: Session, now: Optional[datetime] = None) -> int:
    """Sweep held reservations whose checkout window has passed."""
    now = as_utc_naive(now) if now is not None else utcnow()
    try:
        expired = [
            rid
            for (rid,) in db.query(CheckoutReservation.id)
            .filter(
                CheckoutReservation.status == RESERVATION_HELD,
                CheckoutReservation.expires_at < now - RESERVATION_GRACE,
            )
            .all()
        ]
    finally:
        db.rollback()

    return sum(1 for rid in expired if release_reservation(db, rid, reason="expired"))


# -----------------------------
# Settlement
# -----------------------------

def parse_manifest(metadata: Optional[dict[str, Any]]) -> tuple[dict[int, int], Optional[int]]:
    """Read the ``items``/``dropId`` manifest embedded in a checkout session."""
    metadata = metadata or {}
    raw_items = metadata.get("items")
    try:
        items = json.loads(raw_items) if isinstance(raw_items, str) else raw_items
    except json.JSONDecodeError:
        raise ValidationError("Malformed items manifest")
    if not isinstance(items, list):
        raise ValidationError("Malformed items manifest")

    return merge_items(items), _optional_id(metadata.get("dropId"), "dropId")


def reservation_id_from(metadata: Optional[dict[str, Any]]) -> Optional[int]:
    return _optional_id((metadata or {}).get("reservationId"), "reservationId")


def _optional_id(raw: Any, name: str) -> Optional[int]:
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Malformed {name} in manifest")


def _claim_reservation(db: Session, reservation_id: Optional[int], session_id: str) -> Optional[CheckoutReservation]:
    if reservation_id is None:
        return None
    claimed = db.execute(
        update(CheckoutReservation)
        .where(
            CheckoutReservation.id == reservation_id,
            CheckoutReservation.status.in_(LIVE_RESERVATION),
            or_(
                CheckoutReservation.stripe_session_id.is_(None),
                CheckoutReservation.stripe_session_id == session_id,
            ),
        )
        .values(status=RESERVATION_SETTLED, stripe_session_id=session_id)
        .execution_options(synchronize_session=False)
    )
    if not claimed.rowcount:
        return None
    return get_reservation(db, reservation_id)


def settle_checkout(
    db: Session,
    *,
    session_id: str,
    email: str,
    metadata: Optional[dict[str, Any]],
    amount_total: Optional[int] = None,
) -> Order:
    """Turn a confirmed payment session into an order.

    The stock was taken when the session's reservation was made, so a live
    reservation settles without touching stock. Only a session with no live
    reservation takes stock here, clamped at zero and logged as an anomaly.
    Idempotent on ``session_id``: a second call raises ``AlreadySettled``
    and changes nothing.
    """
    if not session_id:
        raise ValidationError("Missing session id")
    merged, drop_id = parse_manifest(metadata)
    reservation_id = reservation_id_from(metadata)

    try:
        # Claim the session first: the unique stripe_session_id makes a
        # redelivered event fail here, before anything else is touched.
        order = Order(
            user_email=normalize_email(email),
            items=[],
            total_amount=0,
            stripe_session_id=session_id,
            drop_id=drop_id,
            status="pending",
        )
        db.add(order)
        try:
            db.flush()
        except IntegrityError:
            raise AlreadySettled(session_id)

        reservation = _claim_reservation(db, reservation_id, session_id)
        if reservation is not None:
            order_items = list(reservation.items)
            order.drop_id = reservation.drop_id
            if not order.user_email:
                order.user_email = reservation.user_email
        else:
            logger.warning(
                "Settlement anomaly: session %s has no live reservation (reservation=%s); taking stock now",
                session_id, reservation_id,
            )
            prices = {
                v.id: v.price
                for v in db.query(ProductVariant).filter(ProductVariant.id.in_(list(merged))).all()
            }
            order_items = []
            for vid, qty in merged.items():
                if vid not in prices:
                    logger.warning("Settlement anomaly: variant %s no longer exists (session=%s)", vid, session_id)
                order_items.append({"variant_id": vid, "quantity": qty, "price": prices.get(vid, 0)})
            _apply_decrements(db, merged, drop_id, clamp=True)

        total = sum(i["price"] * i["quantity"] for i in order_items)
        if amount_total is not None and int(amount_total) != total:
            logger.warning(
                "Settlement amount mismatch for session %s: stripe=%s store=%s",
                session_id, amount_total, total,
            )

        order.items = order_items
        order.total_amount = total
        order.status = "completed"
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info("Settled session %s as order %s (total=%s)", session_id, order.id, order.total_amount)
    return order


# -----------------------------
# Orders
# -----------------------------

def get_orders(db: Session, skip: int = 0, limit: int = 100) -> list[Order]:
    return db.query(Order).order_by(Order.id.desc()).offset(skip).limit(limit).all()


def get_order_count(db: Session) -> int:
    return db.query(Order).count()


# -----------------------------
# Newsletter
# -----------------------------

def create_subscriber(db: Session, email: str) -> NewsletterSubscriber:
    normalized = normalize_email(email)
    if not is_valid_email(normalized):
        raise ValidationError("Invalid email address")

    subscriber = NewsletterSubscriber(email=normalized)
    db.add(subscriber)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Email already subscribed")
    db.refresh(subscriber)
    return subscriber


def get_subscribers(db: Session) -> list[NewsletterSubscriber]:
    return (
        db.query(NewsletterSubscriber)
        .order_by(NewsletterSubscriber.subscribed_at.desc(), NewsletterSubscriber.id.desc())
        .all()
    )
