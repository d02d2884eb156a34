import json
import threading
from datetime import timedelta

import pytest

from dropstore import crud
from dropstore.errors import AlreadySettled, ValidationError
from dropstore.helpers import utcnow
from dropstore.models import CheckoutReservation, Order, ProductVariant

from conftest import completed_event, post_webhook, session_event, sign_payload, start_checkout


def _orders(db, session_id=None):
    db.rollback()
    q = db.query(Order)
    if session_id:
        q = q.filter(Order.stripe_session_id == session_id)
    return q.all()


def _reservation(db, session_id):
    db.rollback()
    return db.query(CheckoutReservation).filter(CheckoutReservation.stripe_session_id == session_id).one()


def _checkout(client, app, items, drop_id=None, email="buyer@example.com"):
    resp = start_checkout(client, items, drop_id=drop_id, email=email)
    assert resp.status_code == 200, resp.text
    return app.state.payments.sessions[-1]


def test_webhook_settles_reserved_checkout(client, app, db, make_product, caplog):
    product = make_product(variants=[{"size": "M", "price": 4500, "stock_total": 5}])
    vid = product.variants[0].id
    call = _checkout(client, app, [(vid, 2)], email="Buyer@Example.com")
    db.rollback()
    assert crud.get_variant(db, vid).stock_total == 3

    with caplog.at_level("WARNING", logger="dropstore.crud"):
        resp = post_webhook(client, session_event(call))

    assert resp.status_code == 200
    assert resp.json() == {"received": True}
    [order] = _orders(db)
    assert order.status == "completed"
    assert order.stripe_session_id == call["id"]
    assert order.user_email == "buyer@example.com"
    assert order.total_amount == 9000
    assert order.items == [{"variant_id": vid, "quantity": 2, "price": 4500}]
    assert order.drop_id is None
    # taken once, at checkout
    assert crud.get_variant(db, vid).stock_total == 3
    assert _reservation(db, call["id"]).status == "settled"
    assert "Settlement anomaly" not in caplog.text


def test_settlement_is_idempotent(client, app, db, make_product):
    product = make_product(variants=[{"size": "M", "price": 4500, "stock_total": 5}])
    vid = product.variants[0].id
    call = _checkout(client, app, [(vid, 1)])
    event = session_event(call)

    first = post_webhook(client, event)
    second = post_webhook(client, event)

    assert first.json() == {"received": True}
    assert second.status_code == 200
    assert second.json() == {"received": True, "duplicate": True}
    assert len(_orders(db, call["id"])) == 1
    assert crud.get_variant(db, vid).stock_total == 4


def test_settle_checkout_raises_already_settled(db, make_product):
    product = make_product(variants=[{"size": "M", "price": 4500, "stock_total": 5}])
    vid = product.variants[0].id
    metadata = {"items": json.dumps([{"variantId": vid, "quantity": 1}]), "dropId": ""}

    crud.settle_checkout(db, session_id="cs_direct", email="a@b.co", metadata=metadata)
    with pytest.raises(AlreadySettled):
        crud.settle_checkout(db, session_id="cs_direct", email="a@b.co", metadata=metadata)

    assert len(_orders(db, "cs_direct")) == 1
    assert crud.get_variant(db, vid).stock_total == 4


def test_concurrent_redeliveries_settle_once(client, app, db, make_product):
    product = make_product(variants=[{"size": "M", "price": 4500, "stock_total": 10}])
    vid = product.variants[0].id
    call = _checkout(client, app, [(vid, 2)])

    attempts = 4
    barrier = threading.Barrier(attempts)
    outcomes = []
    lock = threading.Lock()

    def _deliver():
        session = app.state.SessionLocal()
        try:
            barrier.wait()
            crud.settle_checkout(session, session_id=call["id"], email="a@b.co", metadata=call["metadata"])
            outcome = "settled"
        except AlreadySettled:
            outcome = "duplicate"
        except Exception as e:
            outcome = repr(e)
        finally:
            session.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=_deliver) for _ in range(attempts)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("settled") == 1
    assert outcomes.count("duplicate") == attempts - 1
    assert len(_orders(db, call["id"])) == 1
    assert crud.get_variant(db, vid).stock_total == 8


def test_drop_settlement_keeps_variant_stock(client, app, db, make_product, make_drop):
    product = make_product(variants=[{"size": "M", "price": 4500, "stock_total": 10}])
    vid = product.variants[0].id
    drop = make_drop()
    crud.upsert_allocation(db, drop.id, vid, 3)
    call = _checkout(client, app, [(vid, 2)], drop_id=drop.id)

    resp = post_webhook(client, session_event(call))

    assert resp.status_code == 200
    [order] = _orders(db, call["id"])
    assert order.drop_id == drop.id
    assert crud.get_allocation(db, drop.id, vid).allocated_stock == 1
    assert crud.get_variant(db, vid).stock_total == 10


def test_order_keeps_price_charged_at_checkout(client, app, db, make_product, caplog):
    product = make_product(variants=[{"size": "M", "price": 4500, "stock_total": 5}])
    vid = product.variants[0].id
    call = _checkout(client, app, [(vid, 1)])
    db.rollback()
    crud.update_variant(db, vid, {"price": 9900})

    with caplog.at_level("WARNING", logger="dropstore.crud"):
        post_webhook(client, session_event(call, amount_total=1))

    [order] = _orders(db, call["id"])
    assert order.total_amount == 4500
    assert order.items[0]["price"] == 4500
    assert "amount mismatch" in caplog.text


def test_unreserved_session_takes_stock_and_clamps(client, db, make_product, caplog):
    product = make_product(variants=[{"size": "M", "price": 4500, "stock_total": 1}])
    vid = product.variants[0].id

    with caplog.at_level("WARNING", logger="dropstore.crud"):
        resp = post_webhook(client, completed_event("cs_clamp", [{"variantId": vid, "quantity": 3}]))

    assert resp.status_code == 200
    [order] = _orders(db, "cs_clamp")
    assert order.status == "completed"
    assert order.items == [{"variant_id": vid, "quantity": 3, "price": 4500}]
    assert crud.get_variant(db, vid).stock_total == 0
    assert "no live reservation" in caplog.text
    assert "clamped to 0" in caplog.text


def test_payment_after_release_is_still_honoured(client, app, db, make_product, caplog):
    product = make_product(variants=[{"size": "M", "price": 4500, "stock_total": 2}])
    vid = product.variants[0].id
    call = _checkout(client, app, [(vid, 2)])
    post_webhook(client, session_event(call, "checkout.session.expired", payment_status="unpaid"))
    db.rollback()
    assert crud.get_variant(db, vid).stock_total == 2

    with caplog.at_level("WARNING", logger="dropstore.crud"):
        resp = post_webhook(client, session_event(call))

    assert resp.status_code == 200
    [order] = _orders(db, call["id"])
    assert order.status == "completed"
    assert crud.get_variant(db, vid).stock_total == 0
    assert _reservation(db, call["id"]).status == "released"
    assert "no live reservation" in caplog.text


def test_webhook_rejects_bad_signature(client, app, db, make_product):
    product = make_product(variants=[{"size": "M", "price": 4500, "stock_total": 5}])
    vid = product.variants[0].id
    call = _checkout(client, app, [(vid, 1)])
    event = session_event(call)

    forged = post_webhook(client, event, secret="whsec_wrong")
    unsigned = client.post("/webhook", content=json.dumps(event).encode())

    assert forged.status_code == 400
    assert unsigned.status_code == 400
    assert unsigned.json()["detail"] == "Missing Stripe-Signature header"
    assert _orders(db) == []
    assert _reservation(db, call["id"]).status == "held"


def test_webhook_rejects_tampered_body(client):
    payload = json.dumps(completed_event("cs_tamper", [{"variantId": 1, "quantity": 1}])).encode()
    header = sign_payload(payload)

    resp = client.post("/webhook", content=payload.replace(b"cs_tamper", b"cs_tampered"), headers={"stripe-signature": header})

    assert resp.status_code == 400


def test_webhook_ignores_other_events(client, db):
    event = {"id": "evt_1", "object": "event", "type": "payment_intent.created", "data": {"object": {"id": "pi_1"}}}

    resp = post_webhook(client, event)

    assert resp.status_code == 200
    assert resp.json() == {"received": True}
    assert _orders(db) == []


def test_async_payment_holds_stock_until_it_clears(client, app, db, make_product):
    product = make_product(variants=[{"size": "M", "price": 4500, "stock_total": 5}])
    vid = product.variants[0].id
    call = _checkout(client, app, [(vid, 1)])

    pending = post_webhook(client, session_event(call, payment_status="unpaid"))
    assert pending.status_code == 200
    assert _orders(db) == []
    assert _reservation(db, call["id"]).status == "awaiting_payment"

    # past the Stripe expiry the sweep still leaves it alone
    assert crud.release_expired_reservations(db, now=utcnow() + timedelta(hours=3)) == 0

    paid = post_webhook(client, session_event(call, "checkout.session.async_payment_succeeded"))

    assert paid.status_code == 200
    assert len(_orders(db, call["id"])) == 1
    assert crud.get_variant(db, vid).stock_total == 4


def test_failed_async_payment_returns_the_stock(client, app, db, make_product):
    product = make_product(variants=[{"size": "M", "price": 4500, "stock_total": 5}])
    vid = product.variants[0].id
    call = _checkout(client, app, [(vid, 2)])
    post_webhook(client, session_event(call, payment_status="unpaid"))

    resp = post_webhook(client, session_event(call, "checkout.session.async_payment_failed", payment_status="unpaid"))

    assert resp.status_code == 200
    assert _orders(db) == []
    assert _reservation(db, call["id"]).status == "released"
    assert db.get(ProductVariant, vid).stock_total == 5


def test_released_drop_stock_goes_back_to_allocation(client, app, db, make_product, make_drop):
    product = make_product(variants=[{"size": "M", "price": 4500, "stock_total": 10}])
    vid = product.variants[0].id
    drop = make_drop()
    crud.upsert_allocation(db, drop.id, vid, 3)
    call = _checkout(client, app, [(vid, 3)], drop_id=drop.id)
    reservation = _reservation(db, call["id"])

    assert crud.release_reservation(db, reservation.id, reason="test") is True
    assert crud.release_reservation(db, reservation.id, reason="test") is False

    db.rollback()
    assert crud.get_allocation(db, drop.id, vid).allocated_stock == 3
    assert crud.get_variant(db, vid).stock_total == 10


def test_webhook_malformed_manifest(client, db):
    event = completed_event("cs_bad", [])
    event["data"]["object"]["metadata"]["items"] = "{not json"

    resp = post_webhook(client, event)

    assert resp.status_code == 400
    assert _orders(db) == []


def test_parse_manifest():
    merged, drop_id = crud.parse_manifest(
        {"items": json.dumps([{"variantId": 3, "quantity": 1}, {"variantId": 3, "quantity": 2}]), "dropId": "7"}
    )
    assert merged == {3: 3}
    assert drop_id == 7

    with pytest.raises(ValidationError):
        crud.parse_manifest({"items": json.dumps({"variantId": 3}), "dropId": ""})
    with pytest.raises(ValidationError):
        crud.parse_manifest({"items": json.dumps([{"variantId": 3, "quantity": 1}]), "dropId": "abc"})

    assert crud.reservation_id_from({"reservationId": "12"}) == 12
    assert crud.reservation_id_from({"reservationId": ""}) is None
    assert crud.reservation_id_from(None) is None
    with pytest.raises(ValidationError):
        crud.reservation_id_from({"reservationId": "x"})
