# Overview: Pytest coverage for the JSON API: auth, store scoping and error mapping.

"""
Cash Register API Tests

Verifies:
- Bearer token required on every business route
- Store is taken from the token; other stores' sessions are 403
- Error kinds map to stable HTTP statuses with a structured body
"""

from sqlalchemy.exc import OperationalError

from cashdesk.services import movement_service, register_service, session_service


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


class TestAuth:

    def test_missing_token(self, client, store_a):
        response = client.get("/api/cash-registers/current")
        assert response.status_code == 401

    def test_unknown_token(self, client, store_a):
        response = client.get("/api/cash-registers/current", headers=auth_headers("nope"))
        assert response.status_code == 401

    def test_revoked_token(self, client, user_a):
        _, token = session_service.create_session(user_a.id)
        assert session_service.revoke_session(token) is True

        response = client.get("/api/cash-registers/current", headers=auth_headers(token))
        assert response.status_code == 401

    def test_expired_token(self, client, user_a):
        _, token = session_service.create_session(user_a.id, ttl_hours=0)

        response = client.get("/api/cash-registers/current", headers=auth_headers(token))
        assert response.status_code == 401

    def test_health_is_public(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "ok"


class TestRegisterLifecycleApi:

    def test_full_shift(self, client, headers_a):
        response = client.post("/api/cash-registers/open", json={"starting_balance_cents": 100000}, headers=headers_a)
        assert response.status_code == 201
        session_id = response.get_json()["session"]["id"]

        response = client.post("/api/cash-movements", json={"kind": "SALE_PAYMENT", "amount_cents": 50000}, headers=headers_a)
        assert response.status_code == 201
        response = client.post("/api/cash-movements", json={"kind": "EXPENSE", "amount_cents": -20000}, headers=headers_a)
        assert response.status_code == 201

        response = client.get(f"/api/cash-registers/{session_id}/summary", headers=headers_a)
        assert response.status_code == 200
        assert response.get_json()["running_balance_cents"] == 130000

        response = client.post(
            f"/api/cash-registers/{session_id}/close",
            json={"actual_balance_cents": 125000, "notes": "short"},
            headers=headers_a,
        )
        assert response.status_code == 200
        settlement = response.get_json()["settlement"]
        assert settlement["expected_balance_cents"] == 130000
        assert settlement["difference_cents"] == -5000
        assert settlement["variance"]["variance_type"] == "SHORTAGE"

        response = client.get("/api/cash-registers/current", headers=headers_a)
        assert response.get_json()["session"] is None

        response = client.get(f"/api/cash-registers/{session_id}/movements", headers=headers_a)
        assert [m["amount_cents"] for m in response.get_json()["movements"]] == [50000, -20000]

    def test_double_open_is_409(self, client, headers_a, open_session_a):
        response = client.post("/api/cash-registers/open", json={"starting_balance_cents": 0}, headers=headers_a)

        assert response.status_code == 409
        body = response.get_json()
        assert body["kind"] == "CONFLICT"
        assert body["context"]["session_id"] == open_session_a.id

    def test_open_requires_starting_balance(self, client, headers_a):
        response = client.post("/api/cash-registers/open", json={}, headers=headers_a)

        assert response.status_code == 400
        assert response.get_json()["kind"] == "VALIDATION"

    def test_float_money_rejected(self, client, headers_a):
        response = client.post("/api/cash-registers/open", json={"starting_balance_cents": 100.5}, headers=headers_a)
        assert response.status_code == 400

    def test_second_close_is_409(self, client, headers_a, open_session_a):
        url = f"/api/cash-registers/{open_session_a.id}/close"
        assert client.post(url, json={"actual_balance_cents": 100000}, headers=headers_a).status_code == 200

        response = client.post(url, json={"actual_balance_cents": 100000}, headers=headers_a)
        assert response.status_code == 409
        assert response.get_json()["kind"] == "INVALID_STATE"

    def test_unknown_session_is_404(self, client, headers_a):
        response = client.get("/api/cash-registers/9999", headers=headers_a)

        assert response.status_code == 404
        assert response.get_json()["kind"] == "NOT_FOUND"

    def test_movement_without_open_register(self, client, headers_a):
        response = client.post("/api/cash-movements", json={"kind": "CASH_IN", "amount_cents": 100}, headers=headers_a)

        assert response.status_code == 409
        assert response.get_json()["kind"] == "INVALID_STATE"

    def test_movement_wrong_sign(self, client, headers_a, open_session_a):
        response = client.post("/api/cash-movements", json={"kind": "EXPENSE", "amount_cents": 100}, headers=headers_a)
        assert response.status_code == 400

    def test_movement_link_must_be_integer(self, client, headers_a, open_session_a):
        response = client.post(
            "/api/cash-movements",
            json={"kind": "SALE_PAYMENT", "amount_cents": 100, "linked_payment_id": "7"},
            headers=headers_a,
        )
        assert response.status_code == 400

    def test_list_sessions_with_status(self, client, headers_a, open_session_a):
        response = client.get("/api/cash-registers?status=OPEN", headers=headers_a)
        assert [s["id"] for s in response.get_json()["sessions"]] == [open_session_a.id]

        response = client.get("/api/cash-registers?status=CLOSED", headers=headers_a)
        assert response.get_json()["sessions"] == []

    def test_snapshots(self, client, headers_a, open_session_a):
        url = f"/api/cash-registers/{open_session_a.id}/snapshots"
        response = client.post(url, json={"snapshot_type": "RECONCILIATION"}, headers=headers_a)
        assert response.status_code == 201
        assert response.get_json()["snapshot"]["balance_cents"] == 100000

        response = client.get(url, headers=headers_a)
        assert len(response.get_json()["snapshots"]) == 1


class TestStoreScoping:

    def test_other_store_session_is_403(self, client, headers_b, open_session_a):
        for path in ("", "/summary", "/movements", "/snapshots"):
            response = client.get(f"/api/cash-registers/{open_session_a.id}{path}", headers=headers_b)
            assert response.status_code == 403, path

    def test_other_store_cannot_close(self, client, headers_b, open_session_a):
        response = client.post(
            f"/api/cash-registers/{open_session_a.id}/close",
            json={"actual_balance_cents": 0},
            headers=headers_b,
        )
        assert response.status_code == 403
        assert register_service.get_session(open_session_a.id).status == "OPEN"

    def test_movement_goes_to_token_store(self, client, headers_b, open_session_a):
        response = client.post("/api/cash-movements", json={"kind": "CASH_IN", "amount_cents": 100}, headers=headers_b)

        # Store 2 has no open register even though store 1 does
        assert response.status_code == 409
        assert movement_service.list_session_movements(open_session_a.id) == []

    def test_stores_open_independently(self, client, headers_a, headers_b, open_session_a):
        response = client.post("/api/cash-registers/open", json={"starting_balance_cents": 500}, headers=headers_b)
        assert response.status_code == 201

        current_a = client.get("/api/cash-registers/current", headers=headers_a).get_json()["session"]
        current_b = client.get("/api/cash-registers/current", headers=headers_b).get_json()["session"]
        assert current_a["id"] == open_session_a.id
        assert current_b["id"] != open_session_a.id


class TestPaymentsAndSettlementsApi:

    def test_cash_payment_creates_movement(self, client, headers_a, open_session_a):
        response = client.post(
            "/api/payments",
            json={"sale_id": 42, "amount_cents": 50000, "method": "CASH"},
            headers=headers_a,
        )
        assert response.status_code == 201
        payment = response.get_json()["payment"]
        assert payment["direction"] == "IN"
        assert payment["cash_movement_id"] is not None

        response = client.get(f"/api/payments/{payment['id']}", headers=headers_a)
        assert response.status_code == 200

    def test_cash_payment_without_register(self, client, headers_a):
        response = client.post(
            "/api/payments",
            json={"sale_id": 42, "amount_cents": 50000, "method": "CASH"},
            headers=headers_a,
        )
        assert response.status_code == 409

        response = client.get("/api/payments", headers=headers_a)
        assert response.get_json()["payments"] == []

    def test_payment_of_other_store_is_404(self, client, headers_a, headers_b):
        response = client.post(
            "/api/payments",
            json={"purchase_id": 1, "amount_cents": 700, "method": "CHECK"},
            headers=headers_a,
        )
        payment_id = response.get_json()["payment"]["id"]

        assert client.get(f"/api/payments/{payment_id}", headers=headers_b).status_code == 404

    def test_settlement_listing_and_investigation(self, client, headers_a, user_a, open_session_a):
        register_service.close_register(open_session_a.id, user_a.id, 90000)

        response = client.get("/api/settlements?start=2000-01-01&end=2999-01-01", headers=headers_a)
        assert response.status_code == 200
        settlements = response.get_json()["settlements"]
        assert len(settlements) == 1
        variance_id = settlements[0]["variance"]["id"]

        response = client.post(
            f"/api/settlements/variances/{variance_id}/investigation",
            json={"status": "RESOLVED", "notes": "Float miscounted"},
            headers=headers_a,
        )
        assert response.status_code == 200
        assert response.get_json()["variance"]["investigation_status"] == "RESOLVED"

        response = client.post(
            f"/api/settlements/variances/{variance_id}/investigation",
            json={"status": "INVESTIGATING"},
            headers=headers_a,
        )
        assert response.status_code == 409

    def test_bad_date_is_400(self, client, headers_a):
        response = client.get("/api/settlements?start=yesterday", headers=headers_a)
        assert response.status_code == 400


class TestTransientFailures:

    def test_persistent_operational_error_is_503(self, client, headers_a, monkeypatch):
        def always_locked(**kwargs):
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(register_service, "open_register", always_locked)

        response = client.post("/api/cash-registers/open", json={"starting_balance_cents": 0}, headers=headers_a)
        assert response.status_code == 503


class TestReportsApi:

    def _pay(self, client, headers, **body):
        response = client.post("/api/payments", json=body, headers=headers)
        assert response.status_code == 201
        return response.get_json()["payment"]

    def test_payments_for_a_sale(self, client, headers_a, open_session_a):
        cash = self._pay(client, headers_a, sale_id=42, amount_cents=3000, method="CASH")
        card = self._pay(client, headers_a, sale_id=42, amount_cents=2000, method="CREDIT_CARD")
        self._pay(client, headers_a, sale_id=43, amount_cents=999, method="CASH")

        response = client.get("/api/payments?sale_id=42", headers=headers_a)
        assert response.status_code == 200
        assert [p["id"] for p in response.get_json()["payments"]] == [card["id"], cash["id"]]

        response = client.get("/api/payments/total?sale_id=42", headers=headers_a)
        assert response.status_code == 200
        assert response.get_json() == {"documents": {"sale_id": 42}, "total_cents": 5000}

    def test_total_without_document_is_400(self, client, headers_a):
        assert client.get("/api/payments/total", headers=headers_a).status_code == 400
        assert client.get("/api/payments/total?sale_id=abc", headers=headers_a).status_code == 400

    def test_summary(self, client, headers_a, headers_b, open_session_a):
        self._pay(client, headers_a, sale_id=1, amount_cents=5000, method="CASH")
        self._pay(client, headers_a, purchase_id=2, amount_cents=700, method="CHECK")
        self._pay(client, headers_b, sale_id=3, amount_cents=123, method="CREDIT_CARD")

        response = client.get("/api/payments/summary?start=2000-01-01&end=2999-12-31", headers=headers_a)
        assert response.status_code == 200
        summary = response.get_json()
        assert summary["methods"]["CASH"]["in_cents"] == 5000
        assert summary["methods"]["CHECK"]["out_cents"] == 700
        assert summary["methods"]["CREDIT_CARD"]["count"] == 0
        assert summary["net_cents"] == 4300

    def test_inverted_range_is_400(self, client, headers_a):
        response = client.get("/api/payments/summary?start=2026-02-01&end=2026-01-01", headers=headers_a)
        assert response.status_code == 400

    def test_payment_movements(self, client, headers_a, headers_b, open_session_a):
        payment = self._pay(client, headers_a, sale_id=5, amount_cents=2500, method="CASH")

        response = client.get(f"/api/payments/{payment['id']}/movements", headers=headers_a)
        assert response.status_code == 200
        movements = response.get_json()["movements"]
        assert [m["id"] for m in movements] == [payment["cash_movement_id"]]
        assert movements[0]["linked_payment_id"] == payment["id"]

        response = client.get(f"/api/payments/{payment['id']}/movements", headers=headers_b)
        assert response.status_code == 404

    def test_store_movements_by_direction(self, client, headers_a, open_session_a):
        client.post("/api/cash-movements", json={"kind": "SALE_PAYMENT", "amount_cents": 1000}, headers=headers_a)
        client.post("/api/cash-movements", json={"kind": "EXPENSE", "amount_cents": -400}, headers=headers_a)

        response = client.get("/api/cash-movements?direction=OUT", headers=headers_a)
        assert response.status_code == 200
        assert [m["amount_cents"] for m in response.get_json()["movements"]] == [-400]

        response = client.get("/api/cash-movements", headers=headers_a)
        assert [m["amount_cents"] for m in response.get_json()["movements"]] == [-400, 1000]

    def test_store_movements_bad_date_is_400(self, client, headers_a):
        response = client.get("/api/cash-movements?start=last-week", headers=headers_a)
        assert response.status_code == 400
