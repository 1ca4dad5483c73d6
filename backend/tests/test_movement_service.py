# Overview: Pytest coverage for cash movement recording rules.

from datetime import datetime

import pytest

from cashdesk.extensions import db
from cashdesk.models import CashMovement, Payment
from cashdesk.services import movement_service, payment_service, register_service
from cashdesk.time_utils import utcnow
from cashdesk.validation import (
    ConflictError, InvalidStateError, NotFoundError, ValidationError,
)


def _payment(store, user, amount_cents, method="CASH", direction="IN", **document):
    """Insert a payment row directly, without the payment service side effects."""
    if not document:
        document = {"sale_id": 1}
    payment = Payment(
        store_id=store.id,
        amount_cents=amount_cents,
        method=method,
        direction=direction,
        created_by_user_id=user.id,
        created_at=utcnow(),
        **document,
    )
    db.session.add(payment)
    db.session.commit()
    return payment


class TestRecordMovement:

    def test_requires_open_session(self, store_a, user_a):
        with pytest.raises(InvalidStateError) as exc_info:
            movement_service.record_movement(store_a.id, user_a.id, "SALE_PAYMENT", 500)

        assert exc_info.value.context == {"store_id": store_a.id}
        assert db.session.query(CashMovement).count() == 0

    def test_attaches_to_open_session(self, store_a, user_a, open_session_a):
        movement = movement_service.record_movement(
            store_a.id, user_a.id, "sale_payment", 50000, note="Sale #12",
        )

        assert movement.session_id == open_session_a.id
        assert movement.store_id == store_a.id
        assert movement.kind == "SALE_PAYMENT"
        assert movement.amount_cents == 50000
        assert movement.note == "Sale #12"
        assert movement.created_by_user_id == user_a.id

    def test_other_store_session_not_used(self, store_b, user_b, open_session_a):
        with pytest.raises(InvalidStateError):
            movement_service.record_movement(store_b.id, user_b.id, "CASH_IN", 100)

    @pytest.mark.parametrize("kind,amount", [
        ("SALE_PAYMENT", -100),
        ("CASH_IN", -100),
        ("PURCHASE_PAYMENT", 100),
        ("EXPENSE", 100),
        ("REFUND", 100),
        ("CASH_OUT", 100),
    ])
    def test_wrong_sign_rejected(self, store_a, user_a, open_session_a, kind, amount):
        with pytest.raises(ValidationError):
            movement_service.record_movement(store_a.id, user_a.id, kind, amount)

    @pytest.mark.parametrize("amount", [2500, -2500])
    def test_manual_adjustment_either_sign(self, store_a, user_a, open_session_a, amount):
        movement = movement_service.record_movement(store_a.id, user_a.id, "MANUAL_ADJUSTMENT", amount)
        assert movement.amount_cents == amount

    def test_zero_amount_rejected(self, store_a, user_a, open_session_a):
        with pytest.raises(ValidationError):
            movement_service.record_movement(store_a.id, user_a.id, "MANUAL_ADJUSTMENT", 0)

    def test_unknown_kind_rejected(self, store_a, user_a, open_session_a):
        with pytest.raises(ValidationError):
            movement_service.record_movement(store_a.id, user_a.id, "TIP", 100)

    @pytest.mark.parametrize("amount", [12.5, "1e3", "10.00", True, None])
    def test_non_integer_amounts_rejected(self, store_a, user_a, open_session_a, amount):
        with pytest.raises(ValidationError):
            movement_service.record_movement(store_a.id, user_a.id, "CASH_IN", amount)

    def test_amount_ceiling(self, store_a, user_a, open_session_a):
        with pytest.raises(ValidationError):
            movement_service.record_movement(store_a.id, user_a.id, "CASH_IN", 1_000_000_000)

    def test_list_session_movements_in_order(self, store_a, user_a, open_session_a):
        first = movement_service.record_movement(store_a.id, user_a.id, "CASH_IN", 100)
        second = movement_service.record_movement(store_a.id, user_a.id, "CASH_OUT", -50)

        movements = movement_service.list_session_movements(open_session_a.id)
        assert [m.id for m in movements] == [first.id, second.id]

    def test_list_unknown_session(self, app):
        with pytest.raises(NotFoundError):
            movement_service.list_session_movements(404)

    def test_movements_of_new_session_start_empty(self, store_a, user_a, open_session_a):
        movement_service.record_movement(store_a.id, user_a.id, "CASH_IN", 100)
        register_service.close_register(open_session_a.id, user_a.id, 100100)

        second = register_service.open_register(store_a.id, user_a.id, 0)
        assert movement_service.list_session_movements(second.id) == []


class TestPaymentLink:

    def test_link_cash_payment(self, store_a, user_a, open_session_a):
        payment = _payment(store_a, user_a, 4000)

        movement = movement_service.record_movement(
            store_a.id, user_a.id, "SALE_PAYMENT", 4000, linked_payment_id=payment.id,
        )

        assert movement.linked_payment_id == payment.id
        assert db.session.get(Payment, payment.id).cash_movement.id == movement.id

    def test_missing_payment(self, store_a, user_a, open_session_a):
        with pytest.raises(NotFoundError):
            movement_service.record_movement(
                store_a.id, user_a.id, "SALE_PAYMENT", 4000, linked_payment_id=999,
            )

    def test_payment_of_other_store_not_linkable(self, store_a, store_b, user_a, user_b, open_session_a):
        payment = _payment(store_b, user_b, 4000)

        with pytest.raises(NotFoundError):
            movement_service.record_movement(
                store_a.id, user_a.id, "SALE_PAYMENT", 4000, linked_payment_id=payment.id,
            )

    def test_non_cash_payment_not_linkable(self, store_a, user_a, open_session_a):
        payment = _payment(store_a, user_a, 4000, method="CREDIT_CARD")

        with pytest.raises(ValidationError):
            movement_service.record_movement(
                store_a.id, user_a.id, "SALE_PAYMENT", 4000, linked_payment_id=payment.id,
            )

    def test_amount_must_match(self, store_a, user_a, open_session_a):
        payment = _payment(store_a, user_a, 4000)

        with pytest.raises(ValidationError):
            movement_service.record_movement(
                store_a.id, user_a.id, "SALE_PAYMENT", 3999, linked_payment_id=payment.id,
            )

    def test_direction_must_match(self, store_a, user_a, open_session_a):
        payment = _payment(store_a, user_a, 4000, direction="OUT", expense_id=7)

        with pytest.raises(ValidationError):
            movement_service.record_movement(
                store_a.id, user_a.id, "MANUAL_ADJUSTMENT", 4000, linked_payment_id=payment.id,
            )

    def test_double_link_conflicts(self, store_a, user_a, open_session_a):
        payment = _payment(store_a, user_a, 4000)
        movement_service.record_movement(
            store_a.id, user_a.id, "SALE_PAYMENT", 4000, linked_payment_id=payment.id,
        )

        with pytest.raises(ConflictError):
            movement_service.record_movement(
                store_a.id, user_a.id, "SALE_PAYMENT", 4000, linked_payment_id=payment.id,
            )

        assert db.session.query(CashMovement).filter_by(linked_payment_id=payment.id).count() == 1


class TestStoreMovements:

    def test_spans_sessions_newest_first(self, store_a, user_a, open_session_a):
        first = movement_service.record_movement(store_a.id, user_a.id, "SALE_PAYMENT", 1000)
        register_service.close_register(open_session_a.id, user_a.id, 101000)
        register_service.open_register(store_a.id, user_a.id, 5000)
        second = movement_service.record_movement(store_a.id, user_a.id, "EXPENSE", -300)

        movements = movement_service.list_store_movements(store_a.id)

        assert [m.id for m in movements] == [second.id, first.id]
        assert movements[0].session_id != movements[1].session_id

    def test_scoped_to_store(self, store_a, store_b, user_a, user_b, open_session_a):
        movement_service.record_movement(store_a.id, user_a.id, "SALE_PAYMENT", 1000)
        register_service.open_register(store_b.id, user_b.id, 0)
        theirs = movement_service.record_movement(store_b.id, user_b.id, "SALE_PAYMENT", 2000)

        assert [m.id for m in movement_service.list_store_movements(store_b.id)] == [theirs.id]

    def test_filter_by_direction(self, store_a, user_a, open_session_a):
        cash_in = movement_service.record_movement(store_a.id, user_a.id, "SALE_PAYMENT", 1000)
        cash_out = movement_service.record_movement(store_a.id, user_a.id, "EXPENSE", -400)
        adjust_out = movement_service.record_movement(store_a.id, user_a.id, "MANUAL_ADJUSTMENT", -50)

        outbound = movement_service.list_store_movements(store_a.id, direction="out")
        assert [m.id for m in outbound] == [adjust_out.id, cash_out.id]
        assert [m.id for m in movement_service.list_store_movements(store_a.id, direction="IN")] == [cash_in.id]

        with pytest.raises(ValidationError):
            movement_service.list_store_movements(store_a.id, direction="SIDEWAYS")

    def test_filter_by_range(self, store_a, user_a, open_session_a):
        old = movement_service.record_movement(store_a.id, user_a.id, "SALE_PAYMENT", 1000)
        old.created_at = datetime(2026, 1, 15, 12, 0)
        db.session.commit()
        new = movement_service.record_movement(store_a.id, user_a.id, "SALE_PAYMENT", 2000)

        january = movement_service.list_store_movements(
            store_a.id, start=datetime(2026, 1, 1), end=datetime(2026, 1, 31),
        )
        assert [m.id for m in january] == [old.id]
        assert [m.id for m in movement_service.list_store_movements(
            store_a.id, start=datetime(2026, 2, 1),
        )] == [new.id]

        with pytest.raises(ValidationError):
            movement_service.list_store_movements(
                store_a.id, start=datetime(2026, 2, 1), end=datetime(2026, 1, 1),
            )


class TestPaymentMovements:

    def test_cash_payment_has_its_movement(self, store_a, user_a, open_session_a):
        payment = payment_service.record_payment(store_a.id, user_a.id, 2500, "CASH", sale_id=3)

        movements = movement_service.list_payment_movements(store_a.id, payment.id)

        assert [m.id for m in movements] == [payment.cash_movement.id]
        assert movements[0].amount_cents == 2500

    def test_card_payment_has_none(self, store_a, user_a, open_session_a):
        payment = payment_service.record_payment(store_a.id, user_a.id, 2500, "CREDIT_CARD", sale_id=3)
        assert movement_service.list_payment_movements(store_a.id, payment.id) == []

    def test_other_store_payment_not_found(self, store_a, store_b, user_a, open_session_a):
        payment = payment_service.record_payment(store_a.id, user_a.id, 2500, "CASH", sale_id=3)

        with pytest.raises(NotFoundError):
            movement_service.list_payment_movements(store_b.id, payment.id)
