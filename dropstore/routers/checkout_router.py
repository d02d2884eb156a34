import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from .. import config, crud
from ..database import get_db
from ..errors import AlreadySettled, ValidationError
from ..helpers import is_valid_email, normalize_email
from ..payments import StripeGateway, get_gateway
from ..schemas import CheckoutRequest, CheckoutResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["checkout"])

SETTLEMENT_EVENTS = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
RELEASE_EVENTS = {"checkout.session.expired", "checkout.session.async_payment_failed"}


async def raw_body(request: Request) -> bytes:
    return await request.body()


@router.post("/api/checkout", response_model=CheckoutResponse)
def create_checkout(
    body: CheckoutRequest,
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_gateway),
):
    """Reserve the stock and open a Stripe Checkout session for it.

    The stock is taken here and held until the session is paid, expires or
    fails; settlement turns the hold into an order.
    """
    email = normalize_email(body.email)
    if not is_valid_email(email):
        raise ValidationError("Invalid email address")

    crud.release_expired_reservations(db)
    lines = crud.prepare_checkout(
        db,
        [{"variant_id": i.variant_id, "quantity": i.quantity} for i in body.items],
        drop_id=body.drop_id,
    )
    reservation = crud.reserve_checkout(db, lines, email=email, drop_id=body.drop_id)

    try:
        session = gateway.create_checkout_session(
            lines=lines,
            email=email,
            drop_id=body.drop_id,
            reservation_id=reservation.id,
            expires_at=reservation.expires_at,
            success_url=f"{config.PUBLIC_URL}/success.html",
            cancel_url=f"{config.PUBLIC_URL}/cancel.html",
        )
    except Exception:
        crud.release_reservation(db, reservation.id, reason="checkout session failed")
        raise

    crud.attach_session(db, reservation.id, session["id"])
    logger.info(
        "Created checkout session %s (reservation=%s, drop=%s, lines=%d)",
        session["id"], reservation.id, body.drop_id, len(lines),
    )
    return {"sessionId": session["id"], "url": session.get("url")}


@router.post("/webhook", include_in_schema=False)
def stripe_webhook(
    request: Request,
    payload: bytes = Depends(raw_body),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_gateway),
):
    """Stripe webhook endpoint. Settles paid checkout sessions exactly once."""
    event = gateway.parse_event(payload, request.headers.get("stripe-signature"))

    event_type = event.get("type")
    data_object = (event.get("data") or {}).get("object") or {}
    metadata = data_object.get("metadata")

    if event_type in RELEASE_EVENTS:
        reservation_id = crud.reservation_id_from(metadata)
        if reservation_id is not None:
            crud.release_reservation(db, reservation_id, reason=event_type)
        return {"received": True}

    if event_type not in SETTLEMENT_EVENTS:
        return {"received": True}

    # async payment methods complete first and pay later
    if event_type == "checkout.session.completed" and data_object.get("payment_status") == "unpaid":
        logger.info("Checkout session %s completed but unpaid; waiting", data_object.get("id"))
        reservation_id = crud.reservation_id_from(metadata)
        if reservation_id is not None:
            crud.mark_awaiting_payment(db, reservation_id)
        return {"received": True}

    email = data_object.get("customer_email") or (data_object.get("customer_details") or {}).get("email") or ""
    try:
        crud.settle_checkout(
            db,
            session_id=data_object.get("id") or "",
            email=email,
            metadata=metadata,
            amount_total=data_object.get("amount_total"),
        )
    except AlreadySettled as e:
        logger.info("Checkout session %s already settled; ignoring redelivery", e.session_id)
        return {"received": True, "duplicate": True}

    return {"received": True}
