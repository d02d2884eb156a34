from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import crud
from ..auth import get_current_admin
from ..database import get_db
from ..emailer import BrevoMailer, get_mailer
from ..errors import NotFound, ValidationError
from ..models import User
from ..schemas import (
    AllocationOut,
    AllocationUpsert,
    DropCreate,
    DropOut,
    DropUpdate,
    NewsletterSendRequest,
    NewsletterSendResponse,
    OrderListResponse,
    ProductCreate,
    ProductOut,
    ProductUpdate,
    RestockRequest,
    SubscriberOut,
    VariantCreate,
    VariantOut,
    VariantUpdate,
)

router = APIRouter(prefix="/api/admin", tags=["admin"])


# -----------------------------
# Products
# -----------------------------

@router.get("/products", response_model=List[ProductOut])
def list_products(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.get_products(db, skip=skip, limit=limit)


@router.post("/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    body: ProductCreate,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.create_product(db, body.model_dump())


@router.get("/products/{product_id}", response_model=ProductOut)
def get_product(
    product_id: int,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    product = crud.get_product(db, product_id)
    if not product:
        raise NotFound("Product not found")
    return product


@router.patch("/products/{product_id}", response_model=ProductOut)
def update_product(
    product_id: int,
    body: ProductUpdate,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    product = crud.update_product(db, product_id, body.model_dump(exclude_unset=True))
    if not product:
        raise NotFound("Product not found")
    return product


@router.delete("/products/{product_id}", response_model=ProductOut)
def delete_product(
    product_id: int,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    product = crud.get_product(db, product_id)
    if not product:
        raise NotFound("Product not found")
    # serialize before the row (and its variants) go away
    out = ProductOut.model_validate(product)
    crud.delete_product(db, product_id)
    return out


# -----------------------------
# Variants
# -----------------------------

@router.post("/products/{product_id}/variants", response_model=VariantOut, status_code=status.HTTP_201_CREATED)
def create_variant(
    product_id: int,
    body: VariantCreate,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    variant = crud.create_variant(db, product_id, body.model_dump())
    if not variant:
        raise NotFound("Product not found")
    return variant


@router.patch("/variants/{variant_id}", response_model=VariantOut)
def update_variant(
    variant_id: int,
    body: VariantUpdate,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    variant = crud.update_variant(db, variant_id, body.model_dump(exclude_unset=True))
    if not variant:
        raise NotFound("Variant not found")
    return variant


@router.post("/variants/{variant_id}/restock", response_model=VariantOut)
def restock_variant(
    variant_id: int,
    body: RestockRequest,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    variant = crud.restock_variant(db, variant_id, body.quantity)
    if not variant:
        raise NotFound("Variant not found")
    return variant


@router.delete("/variants/{variant_id}", response_model=VariantOut)
def delete_variant(
    variant_id: int,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    variant = crud.get_variant(db, variant_id)
    if not variant:
        raise NotFound("Variant not found")
    out = VariantOut.model_validate(variant)
    crud.delete_variant(db, variant_id)
    return out


# -----------------------------
# Drops & allocations
# -----------------------------

@router.get("/drops", response_model=List[DropOut])
def list_drops(
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.get_drops(db)


@router.post("/drops", response_model=DropOut, status_code=status.HTTP_201_CREATED)
def create_drop(
    body: DropCreate,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.create_drop(db, body.model_dump())


@router.patch("/drops/{drop_id}", response_model=DropOut)
def update_drop(
    drop_id: int,
    body: DropUpdate,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    drop = crud.update_drop(db, drop_id, body.model_dump(exclude_unset=True))
    if not drop:
        raise NotFound("Drop not found")
    return drop


@router.delete("/drops/{drop_id}", response_model=DropOut)
def delete_drop(
    drop_id: int,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    drop = crud.get_drop(db, drop_id)
    if not drop:
        raise NotFound("Drop not found")
    out = DropOut.model_validate(drop)
    crud.delete_drop(db, drop_id)
    return out


@router.get("/drops/{drop_id}/allocations", response_model=List[AllocationOut])
def list_allocations(
    drop_id: int,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    if not crud.get_drop(db, drop_id):
        raise NotFound("Drop not found")
    return crud.get_allocations(db, drop_id)


@router.put("/drops/{drop_id}/allocations", response_model=AllocationOut)
def upsert_allocation(
    drop_id: int,
    body: AllocationUpsert,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.upsert_allocation(db, drop_id, body.variant_id, body.allocated_stock)


@router.delete("/drops/{drop_id}/allocations/{variant_id}", response_model=AllocationOut)
def delete_allocation(
    drop_id: int,
    variant_id: int,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    allocation = crud.delete_allocation(db, drop_id, variant_id)
    if not allocation:
        raise NotFound("Allocation not found")
    return allocation


# -----------------------------
# Orders
# -----------------------------

@router.get("/orders", response_model=OrderListResponse)
def list_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return {
        "orders": crud.get_orders(db, skip=skip, limit=limit),
        "total": crud.get_order_count(db),
        "skip": skip,
        "limit": limit,
    }


# -----------------------------
# Newsletter
# -----------------------------

@router.get("/newsletter-subscribers", response_model=List[SubscriberOut])
def list_subscribers(
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return crud.get_subscribers(db)


@router.post("/newsletter/send", response_model=NewsletterSendResponse)
def send_newsletter(
    body: NewsletterSendRequest,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
    mailer: BrevoMailer = Depends(get_mailer),
):
    emails = [s.email for s in crud.get_subscribers(db)]
    # don't hold the store open across the Brevo call
    db.rollback()
    if not emails:
        raise ValidationError("No subscribers found")

    message_id = mailer.send_newsletter(recipients=emails, subject=body.subject, html_content=body.html_content)
    return {
        "success": True,
        "message": f"Email sent to {len(emails)} subscribers",
        "messageId": message_id,
    }
