import unittest
from datetime import timedelta

from cashdesk import create_app
from cashdesk.extensions import db
from cashdesk.models import SettlementRecord, VarianceRecord
from cashdesk.services import movement_service, register_service, settlement_service, store_service
from cashdesk.validation import InvalidStateError, NotFoundError, ValidationError


class SettlementServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.remove()
        db.drop_all()
        db.create_all()

        self.store = store_service.create_store("Main", "MAIN")
        self.other_store = store_service.create_store("Branch", "BR")
        self.user = store_service.create_user(self.store.id, "cashier")
        self.other_user = store_service.create_user(self.other_store.id, "branch_cashier")

    def _settle(self, actual_cents, store=None, user=None, movements=()):
        store = store or self.store
        user = user or self.user
        session = register_service.open_register(store.id, user.id, 100000)
        for kind, amount in movements:
            movement_service.record_movement(store.id, user.id, kind, amount)
        return register_service.close_register(session.id, user.id, actual_cents)

    def test_balanced_close_has_no_variance(self):
        record = self._settle(130000, movements=[("SALE_PAYMENT", 50000), ("EXPENSE", -20000)])

        self.assertEqual(record.expected_balance_cents, 130000)
        self.assertEqual(record.difference_cents, 0)
        self.assertIsNone(record.variance)
        self.assertEqual(db.session.query(VarianceRecord).count(), 0)

    def test_get_settlement_scoped_to_store(self):
        record = self._settle(100000)

        self.assertEqual(settlement_service.get_settlement(self.store.id, record.id).id, record.id)
        with self.assertRaises(NotFoundError):
            settlement_service.get_settlement(self.other_store.id, record.id)

    def test_list_settlements_newest_first_per_store(self):
        first = self._settle(100000)
        second = self._settle(99000)
        self._settle(50000, store=self.other_store, user=self.other_user)

        records = settlement_service.list_settlements(self.store.id)
        self.assertEqual([r.id for r in records], [second.id, first.id])

    def test_list_settlements_date_range_inclusive(self):
        record = self._settle(100000)
        settled_at = record.settled_at

        self.assertEqual(
            [r.id for r in settlement_service.list_settlements(self.store.id, start=settled_at, end=settled_at)],
            [record.id],
        )
        self.assertEqual(
            settlement_service.list_settlements(self.store.id, start=settled_at + timedelta(seconds=1)),
            [],
        )
        self.assertEqual(
            settlement_service.list_settlements(self.store.id, end=settled_at - timedelta(seconds=1)),
            [],
        )

    def test_list_settlements_rejects_inverted_range(self):
        record = self._settle(100000)
        with self.assertRaises(ValidationError):
            settlement_service.list_settlements(
                self.store.id,
                start=record.settled_at,
                end=record.settled_at - timedelta(days=1),
            )

    def test_variance_investigation_flow(self):
        record = self._settle(95000)
        variance = record.variance
        self.assertEqual(variance.investigation_status, "PENDING")

        updated = settlement_service.update_variance_investigation(
            self.store.id, variance.id, self.user.id, "investigating", "Checking receipts",
        )
        self.assertEqual(updated.investigation_status, "INVESTIGATING")
        self.assertEqual(updated.notes, "Checking receipts")
        self.assertEqual(updated.investigated_by_user_id, self.user.id)
        self.assertIsNotNone(updated.investigated_at)

        updated = settlement_service.update_variance_investigation(
            self.store.id, variance.id, self.user.id, "WRITTEN_OFF",
        )
        self.assertEqual(updated.investigation_status, "WRITTEN_OFF")
        self.assertEqual(updated.notes, "Checking receipts")

    def test_variance_terminal_status_is_final(self):
        record = self._settle(95000)
        settlement_service.update_variance_investigation(self.store.id, record.variance.id, self.user.id, "RESOLVED")

        with self.assertRaises(InvalidStateError):
            settlement_service.update_variance_investigation(
                self.store.id, record.variance.id, self.user.id, "INVESTIGATING",
            )

    def test_variance_cannot_return_to_pending(self):
        record = self._settle(105000)
        with self.assertRaises(InvalidStateError):
            settlement_service.update_variance_investigation(
                self.store.id, record.variance.id, self.user.id, "PENDING",
            )

    def test_variance_unknown_status(self):
        record = self._settle(105000)
        with self.assertRaises(ValidationError):
            settlement_service.update_variance_investigation(
                self.store.id, record.variance.id, self.user.id, "IGNORED",
            )

    def test_variance_of_other_store_not_found(self):
        record = self._settle(105000)
        with self.assertRaises(NotFoundError):
            settlement_service.update_variance_investigation(
                self.other_store.id, record.variance.id, self.other_user.id, "RESOLVED",
            )

    def test_investigation_leaves_settlement_untouched(self):
        record = self._settle(95000)
        before = record.to_dict()
        before.pop("variance")

        settlement_service.update_variance_investigation(self.store.id, record.variance.id, self.user.id, "RESOLVED")

        after = db.session.get(SettlementRecord, record.id).to_dict()
        after.pop("variance")
        self.assertEqual(before, after)


if __name__ == "__main__":
    unittest.main()
