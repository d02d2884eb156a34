from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from .helpers import utcnow

Base = declarative_base()


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="admin")
    created_at = Column(DateTime, server_default=func.now())


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    images = Column(JSON, nullable=False, default=list)  # ordered image references
    category = Column(String(50), nullable=False, default="streetwear", index=True)
    created_at = Column(DateTime, server_default=func.now())

    variants = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.id",
    )


class ProductVariant(Base):
    __tablename__ = "product_variants"
    __table_args__ = (
        CheckConstraint("stock_total >= 0", name="ck_variant_stock_total"),
        CheckConstraint("price >= 0", name="ck_variant_price"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    size = Column(String(20), nullable=False)
    price = Column(Integer, nullable=False)  # cents
    stock_total = Column(Integer, nullable=False, default=0)

    product = relationship("Product", back_populates="variants")
    allocations = relationship("DropAllocation", back_populates="variant", cascade="all, delete-orphan")

    @property
    def stock_for_drop(self):
        """Allocated stock in the drop that is live right now; None outside any drop."""
        now = utcnow()
        live = [
            a for a in self.allocations
            if not a.drop.processed and a.drop.start_at <= now <= a.drop.end_at
        ]
        if not live:
            return None
        # same tie-break as the active drop lookup
        return max(live, key=lambda a: (a.drop.start_at, a.drop.id)).allocated_stock


class Drop(Base):
    __tablename__ = "drops"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    # naive UTC
    start_at = Column(DateTime, nullable=False, index=True)
    end_at = Column(DateTime, nullable=False, index=True)
    key_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=False)
    processed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())

    allocations = relationship("DropAllocation", back_populates="drop", cascade="all, delete-orphan")


class DropAllocation(Base):
    __tablename__ = "drop_products"
    __table_args__ = (
        UniqueConstraint("drop_id", "product_variant_id", name="uq_drop_variant"),
        CheckConstraint("allocated_stock >= 0", name="ck_allocated_stock"),
    )

    id = Column(Integer, primary_key=True, index=True)
    drop_id = Column(Integer, ForeignKey("drops.id", ondelete="CASCADE"), nullable=False, index=True)
    product_variant_id = Column(
        Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    allocated_stock = Column(Integer, nullable=False)

    drop = relationship("Drop", back_populates="allocations")
    variant = relationship("ProductVariant", back_populates="allocations")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_email = Column(String(255), nullable=False)
    items = Column(JSON, nullable=False)  # [{"variant_id", "quantity", "price"}]
    total_amount = Column(Integer, nullable=False)  # cents
    stripe_session_id = Column(String(255), nullable=False, unique=True, index=True)
    drop_id = Column(Integer, nullable=True)

    # pending | completed | failed
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(DateTime, server_default=func.now())


class CheckoutReservation(Base):
    """Stock taken for an open Stripe checkout session until it settles or is released."""

    __tablename__ = "checkout_reservations"

    id = Column(Integer, primary_key=True, index=True)
    stripe_session_id = Column(String(255), nullable=True, unique=True, index=True)
    user_email = Column(String(255), nullable=False)
    drop_id = Column(Integer, nullable=True)
    items = Column(JSON, nullable=False)  # [{"variant_id", "quantity", "price"}]
    total_amount = Column(Integer, nullable=False)  # cents

    # held | awaiting_payment | settled | released
    status = Column(String(20), nullable=False, default="held", index=True)
    # naive UTC; matches the Stripe session expiry
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())


class NewsletterSubscriber(Base):
    __tablename__ = "newsletter_subs"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    subscribed_at = Column(DateTime, server_default=func.now())
