from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .helpers import BCRYPT_MAX_BYTES, as_utc_naive, fits_bcrypt


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# Auth

class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, description="Admin email")
    password: str = Field(..., min_length=1, description="Admin password")


class UserOut(BaseModel):
    id: int
    email: str
    role: str

    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserOut


# Catalog

class VariantBase(BaseModel):
    size: str = Field(..., min_length=1, max_length=20)
    price: int = Field(..., ge=0, description="Price in minor currency units")
    stock_total: int = Field(0, ge=0)


class VariantCreate(VariantBase):
    pass


class VariantUpdate(BaseModel):
    """Stock is not editable here; it moves only through restock and sales."""

    size: Optional[str] = Field(None, min_length=1, max_length=20)
    price: Optional[int] = Field(None, ge=0)


class RestockRequest(BaseModel):
    quantity: int = Field(..., gt=0)


class VariantOut(VariantBase):
    id: int
    product_id: int
    stock_for_drop: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class ProductBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    category: str = Field("streetwear", max_length=50)


class ProductCreate(ProductBase):
    variants: List[VariantCreate] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    images: Optional[List[str]] = None
    category: Optional[str] = Field(None, max_length=50)


class ProductOut(ProductBase):
    id: int
    created_at: Optional[datetime] = None
    variants: List[VariantOut] = []

    model_config = ConfigDict(from_attributes=True)


# Public listings: variants carry the sellable stock for the listing's scope.

class ListedVariant(BaseModel):
    id: int
    size: str
    price: int
    stock: int


class ListedProduct(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    images: List[str] = []
    category: Optional[str] = None
    variants: List[ListedVariant] = []


# Drops

def _drop_key(v: str) -> str:
    if not fits_bcrypt(v):
        raise ValueError(f"key must be at most {BCRYPT_MAX_BYTES} bytes")
    return v


class DropCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_at: datetime
    end_at: datetime
    key: str = Field(..., min_length=1, description="Shared access key, stored hashed")

    @field_validator("key")
    @classmethod
    def _key_fits(cls, v: str) -> str:
        return _drop_key(v)

    @model_validator(mode="after")
    def _window(self):
        self.start_at = as_utc_naive(self.start_at)
        self.end_at = as_utc_naive(self.end_at)
        if self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self


class DropUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    key: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None
    processed: Optional[bool] = None

    @field_validator("key")
    @classmethod
    def _key_fits(cls, v: Optional[str]) -> Optional[str]:
        return _drop_key(v) if v is not None else v


class DropOut(BaseModel):
    """Drop as exposed to clients; never carries the key hash."""

    id: int
    title: str
    description: Optional[str] = None
    start_at: datetime
    end_at: datetime
    is_active: bool
    processed: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UnlockRequest(BaseModel):
    key: str = ""


class UnlockResponse(BaseModel):
    success: bool
    message: str


class AllocationUpsert(BaseModel):
    variant_id: int = Field(..., gt=0)
    allocated_stock: int = Field(..., ge=0)


class AllocationOut(BaseModel):
    id: int
    drop_id: int
    product_variant_id: int
    allocated_stock: int

    model_config = ConfigDict(from_attributes=True)


# Checkout

class CheckoutItem(BaseModel):
    variant_id: int = Field(..., gt=0, alias="variantId")
    quantity: int = Field(..., gt=0)

    model_config = ConfigDict(populate_by_name=True)


class CheckoutRequest(BaseModel):
    items: List[CheckoutItem] = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    drop_id: Optional[int] = Field(None, gt=0, alias="dropId")

    model_config = ConfigDict(populate_by_name=True)


class CheckoutResponse(BaseModel):
    sessionId: str
    url: Optional[str] = None


class OrderItem(BaseModel):
    variant_id: int
    quantity: int
    price: int


class OrderOut(BaseModel):
    id: int
    user_email: str
    items: List[OrderItem]
    total_amount: int
    stripe_session_id: str
    drop_id: Optional[int] = None
    status: OrderStatus
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OrderListResponse(BaseModel):
    orders: List[OrderOut]
    total: int
    skip: int
    limit: int


# Newsletter

class SubscribeRequest(BaseModel):
    email: str = ""


class SubscriberOut(BaseModel):
    email: str
    subscribed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class NewsletterSendRequest(BaseModel):
    subject: str = Field(..., min_length=1)
    html_content: str = Field(..., min_length=1, alias="htmlContent")

    model_config = ConfigDict(populate_by_name=True)


class NewsletterSendResponse(BaseModel):
    success: bool
    message: str
    messageId: Optional[str] = None
