"""HTTP tests for the billing API: activation, task flow, invoices, events and health."""

import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

pytestmark = pytest.mark.integration

COMMISSIONER = "commissioner-api"
FREELANCER = "freelancer-api"


def _activate(client: TestClient, project_id: str = "proj-api", **overrides):
    body = {
        "project_id": project_id,
        "title": "Brand refresh",
        "commissioner_id": COMMISSIONER,
        "freelancer_id": FREELANCER,
        "invoicing_method": "milestone",
        "total_budget": "300.00",
        "total_tasks": 3,
        "duration_weeks": "2",
    }
    body.update(overrides)
    return client.post("/api/projects/activate", json=body)


def _submit_and_approve(client: TestClient, task_id: str):
    response = client.post(f"/api/tasks/{task_id}/submit", json={"actor_id": FREELANCER})
    assert response.status_code == 200
    response = client.post(f"/api/tasks/{task_id}/approve", json={"actor_id": COMMISSIONER})
    assert response.status_code == 200
    return response.json()


class TestActivation:
    def test_activate_milestone_project(self, api_client: TestClient):
        response = _activate(api_client)

        assert response.status_code == 200
        body = response.json()
        assert body["outcome"] == "applied"
        assert body["project"]["status"] == "ongoing"
        assert body["project"]["payment_phase"] is None
        assert Decimal(body["project"]["original_duration_weeks"]) == Decimal("2")
        assert body["invoices"] == []

    def test_repeated_activation_is_noop(self, api_client: TestClient):
        _activate(api_client)

        response = _activate(api_client)

        assert response.status_code == 200
        assert response.json()["outcome"] == "noop"

    def test_activate_completion_project_issues_upfront(self, api_client: TestClient):
        response = _activate(api_client, invoicing_method="completion", total_budget="1000", total_tasks=2)

        body = response.json()
        assert body["project"]["payment_phase"] == "upfront_paid"
        [upfront] = body["invoices"]
        assert upfront["invoice_type"] == "completion_upfront"
        assert Decimal(upfront["total_amount"]) == Decimal("120")
        assert upfront["status"] == "paid"

    def test_invalid_budget_rejected_by_request_validation(self, api_client: TestClient):
        response = _activate(api_client, total_budget="0")

        assert response.status_code == 422

    def test_conflicting_reactivation_has_debug_id(self, api_client: TestClient):
        _activate(api_client)

        response = _activate(api_client, invoicing_method="completion")

        assert response.status_code == 422
        body = response.json()
        assert isinstance(body["detail"], str)
        uuid.UUID(body["debug_id"])


class TestMilestoneFlow:
    def test_approval_issues_and_settles_invoice(self, api_client: TestClient, api_ledger):
        _activate(api_client)

        body = _submit_and_approve(api_client, "proj-api-t1")

        assert body["task"]["status"] == "approved"
        [invoice] = body["invoices"]
        assert invoice["invoice_type"] == "auto_milestone"
        assert Decimal(invoice["total_amount"]) == Decimal("100")
        assert invoice["status"] == "paid"
        assert invoice["wallet_transaction_id"]

        repeat = api_client.post(f"/api/invoices/{invoice['id']}/pay", json={"actor_id": COMMISSIONER})
        assert repeat.json()["outcome"] == "noop"

    def test_reject_with_comment(self, api_client: TestClient):
        _activate(api_client)
        api_client.post("/api/tasks/proj-api-t1/submit", json={"actor_id": FREELANCER})

        response = api_client.post(
            "/api/tasks/proj-api-t1/reject",
            json={"actor_id": COMMISSIONER, "reason": "Logo is off-brand"},
        )

        assert response.status_code == 200
        task = response.json()["task"]
        assert task["status"] == "rejected"
        assert task["rejection_reason"] == "Logo is off-brand"

    def test_illegal_transition_is_422(self, api_client: TestClient):
        _activate(api_client)

        response = api_client.post("/api/tasks/proj-api-t1/approve", json={"actor_id": COMMISSIONER})

        assert response.status_code == 422
        assert "pending" in response.json()["detail"]

    def test_project_detail_after_all_approvals(self, api_client: TestClient):
        _activate(api_client)
        for position in (1, 2, 3):
            _submit_and_approve(api_client, f"proj-api-t{position}")

        response = api_client.get("/api/projects/proj-api")

        assert response.status_code == 200
        body = response.json()
        assert body["project"]["status"] == "completed"
        assert [t["status"] for t in body["tasks"]] == ["approved"] * 3
        assert Decimal(body["budget"]["invoiced"]) == Decimal("300")
        assert Decimal(body["budget"]["paid"]) == Decimal("300")
        assert Decimal(body["budget"]["uninvoiced"]) == Decimal("0")

        invoices = api_client.get("/api/projects/proj-api/invoices").json()
        assert [i["invoice_number"] for i in invoices] == [
            "INV-proj-api-001",
            "INV-proj-api-002",
            "INV-proj-api-003",
        ]


class TestCompletionFlow:
    def test_manual_invoices_and_final_settlement(self, api_client: TestClient):
        _activate(api_client, invoicing_method="completion", total_budget="1000", total_tasks=2)
        _submit_and_approve(api_client, "proj-api-t1")

        response = api_client.post(
            "/api/projects/proj-api/manual-invoices",
            json={"actor_id": FREELANCER, "amount": "300", "task_id": "proj-api-t1"},
        )
        assert response.status_code == 201
        assert response.json()["outcome"] == "applied"

        too_much = api_client.post(
            "/api/projects/proj-api/manual-invoices",
            json={"actor_id": FREELANCER, "amount": "900"},
        )
        assert too_much.status_code == 422
        assert "debug_id" in too_much.json()

        _submit_and_approve(api_client, "proj-api-t2")

        detail = api_client.get("/api/projects/proj-api").json()
        assert detail["project"]["status"] == "completed"
        assert detail["project"]["payment_phase"] == "finalized"
        assert Decimal(detail["budget"]["invoiced"]) == Decimal("1000")
        final = [i for i in detail["invoices"] if i["invoice_type"] == "completion_final"]
        assert [Decimal(i["total_amount"]) for i in final] == [Decimal("580")]

    def test_complete_rejected_for_milestone_project(self, api_client: TestClient):
        _activate(api_client)

        response = api_client.post("/api/projects/proj-api/complete", json={"actor_id": COMMISSIONER})

        assert response.status_code == 422


class TestInvoiceCommands:
    def test_hold_release_then_cancel_is_refused(self, api_client: TestClient, api_ledger):
        api_ledger.scenario = "decline"
        _activate(api_client)
        body = _submit_and_approve(api_client, "proj-api-t1")
        assert body["outcome"] == "applied"
        invoice_id = body["invoices"][0]["id"]

        held = api_client.post(f"/api/invoices/{invoice_id}/hold", json={"actor_id": COMMISSIONER})
        assert held.json()["invoices"][0]["status"] == "on_hold"

        blocked = api_client.post(f"/api/invoices/{invoice_id}/pay", json={"actor_id": COMMISSIONER})
        assert blocked.status_code == 422

        released = api_client.post(f"/api/invoices/{invoice_id}/release", json={"actor_id": COMMISSIONER})
        assert released.json()["invoices"][0]["status"] == "sent"

        cancelled = api_client.post(f"/api/invoices/{invoice_id}/cancel", json={"actor_id": COMMISSIONER})
        assert cancelled.status_code == 422

    def test_declined_payment_is_pending(self, api_client: TestClient, api_ledger):
        api_ledger.scenario = "decline"
        _activate(api_client)
        invoice_id = _submit_and_approve(api_client, "proj-api-t1")["invoices"][0]["id"]

        response = api_client.post(f"/api/invoices/{invoice_id}/pay", json={"actor_id": COMMISSIONER})

        assert response.status_code == 200
        body = response.json()
        assert body["outcome"] == "payment_pending_confirmation"
        assert body["invoices"][0]["payment_attempts"] == 2

        confirmed = api_client.post(
            f"/api/invoices/{invoice_id}/confirm",
            json={"actor_id": COMMISSIONER, "transaction_id": "txn_manual_1"},
        )
        assert confirmed.json()["invoices"][0]["status"] == "paid"
        assert confirmed.json()["invoices"][0]["wallet_transaction_id"] == "txn_manual_1"

    def test_unknown_invoice_is_404(self, api_client: TestClient):
        response = api_client.post("/api/invoices/nope/pay", json={"actor_id": COMMISSIONER})

        assert response.status_code == 404
        assert response.json()["detail"] == "Invoice 'nope' not found"


class TestEventsAndNotifications:
    def test_events_filtered_by_project_and_type(self, api_client: TestClient):
        _activate(api_client)
        _activate(api_client, project_id="proj-other")
        _submit_and_approve(api_client, "proj-api-t1")

        response = api_client.get(
            "/api/events", params={"project_id": "proj-api", "type": ["task_approved", "invoice_sent"]}
        )

        assert response.status_code == 200
        events = response.json()
        assert [e["type"] for e in events] == ["task_approved", "invoice_sent"]
        assert events[1]["notification_type"] == 40
        assert events[1]["entity_type"] == 5
        assert events[1]["metadata"]["invoiceNumber"] == "INV-proj-api-001"
        assert events[1]["context"]["projectId"] == "proj-api"

    def test_event_limit(self, api_client: TestClient):
        _activate(api_client)

        events = api_client.get("/api/events", params={"project_id": "proj-api", "limit": 2}).json()

        assert [e["type"] for e in events] == ["task_created", "task_created"]

    def test_notifications_for_freelancer(self, api_client: TestClient):
        _activate(api_client)
        _submit_and_approve(api_client, "proj-api-t1")

        response = api_client.get(f"/api/notifications/{FREELANCER}")

        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == FREELANCER
        types = [n["event_type"] for n in body["notifications"]]
        assert types == ["project_activated", "task_approved", "milestone_payment_received"]
        assert all(n["recipient_id"] == FREELANCER for n in body["notifications"])

    def test_notifications_for_commissioner(self, api_client: TestClient):
        _activate(api_client)
        _submit_and_approve(api_client, "proj-api-t1")

        notifications = api_client.get(f"/api/notifications/{COMMISSIONER}").json()["notifications"]

        assert [n["event_type"] for n in notifications] == ["task_submitted", "invoice_sent"]
        assert notifications[1]["link"] == "/invoices/INV-proj-api-001"


class TestHealth:
    def test_health(self, api_client: TestClient):
        response = api_client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "billing-engine"}

    def test_ready_checks_database(self, api_client: TestClient):
        response = api_client.get("/api/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready", "checks": {"database": True}}
