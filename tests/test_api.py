"""HTTP-level tests: routing, status codes and RFC 7807 problem bodies."""

from __future__ import annotations

import uuid
from decimal import Decimal

from httpx import AsyncClient

from tests.conftest import seed_employee, seed_policy


class TestHealth:

    async def test_health(self, client: AsyncClient):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"


class TestPolicyEndpoints:

    async def test_create_get_and_list(self, client: AsyncClient):
        resp = await client.post(
            "/api/v1/policies",
            json={"leaveType": "Sick", "maxDaysPerYear": 10, "carryForwardDays": 2},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["leave_type"] == "sick"
        assert body["can_carry_forward"] is True

        resp = await client.get("/api/v1/policies/active/sick")
        assert resp.status_code == 200
        assert resp.json()["id"] == body["id"]

        resp = await client.get("/api/v1/policies", params={"is_active": True})
        assert [p["leave_type"] for p in resp.json()] == ["sick"]

    async def test_duplicate_is_problem_json(self, client: AsyncClient):
        payload = {"leave_type": "annual", "total_days_per_year": 25}
        assert (await client.post("/api/v1/policies", json=payload)).status_code == 201

        resp = await client.post("/api/v1/policies", json=payload)
        assert resp.status_code == 409
        assert resp.headers["content-type"].startswith("application/problem+json")
        body = resp.json()
        assert body["kind"] == "duplicate-policy"
        assert body["instance"] == "/api/v1/policies"

    async def test_patch_and_deactivate(self, client: AsyncClient):
        created = (await client.post(
            "/api/v1/policies", json={"leave_type": "annual", "total_days_per_year": 25},
        )).json()

        resp = await client.patch(
            f"/api/v1/policies/{created['id']}", json={"minNoticeDays": 3},
        )
        assert resp.status_code == 200
        assert resp.json()["min_notice_days"] == 3

        resp = await client.put(
            f"/api/v1/policies/{created['id']}/status", json={"is_active": False},
        )
        assert resp.json()["is_active"] is False

        resp = await client.delete(f"/api/v1/policies/{created['id']}")
        assert resp.status_code == 204

    async def test_missing_policy_404(self, client: AsyncClient):
        resp = await client.get(f"/api/v1/policies/{uuid.uuid4()}")
        assert resp.status_code == 404
        assert resp.json()["kind"] == "not-found"

    async def test_request_validation_422(self, client: AsyncClient):
        resp = await client.post("/api/v1/policies", json={"leave_type": "annual"})
        assert resp.status_code == 422
        body = resp.json()
        assert body["kind"] == "validation"
        assert "total_days_per_year" in body["errors"]


class TestRequestFlow:

    async def test_submit_review_and_balance(self, client: AsyncClient, db):
        emp = await seed_employee(db)
        await seed_policy(db)
        await db.commit()

        resp = await client.post(
            "/api/v1/requests",
            json={
                "employeeId": str(emp.id),
                "leaveType": "annual",
                "startDate": "2026-03-02",
                "endDate": "2026-03-06",
                "reason": "Family visit",
            },
        )
        assert resp.status_code == 201, resp.text
        req = resp.json()
        assert req["status"] == "pending"
        assert req["employee"]["full_name"] == "Test User"

        resp = await client.put(
            f"/api/v1/requests/{req['id']}/review", json={"action": "approve"},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "approved"
        assert float(resp.json()["paid_days"]) == 5

        resp = await client.get(f"/api/v1/balances/{emp.id}/annual", params={"year": 2026})
        assert resp.status_code == 200
        assert float(resp.json()["remaining"]) == 20

        resp = await client.put(
            f"/api/v1/requests/{req['id']}/review", json={"action": "approve"},
        )
        assert resp.status_code == 409
        assert resp.json()["kind"] == "invalid-state"

        resp = await client.get("/api/v1/requests", params={"status": "approved"})
        assert resp.json()["meta"]["total"] == 1

    async def test_overlap_conflict_lists_ids(self, client: AsyncClient, db):
        emp = await seed_employee(db)
        await seed_policy(db)
        await db.commit()

        body = {
            "employee_id": str(emp.id),
            "leave_type": "annual",
            "start_date": "2026-03-02",
            "end_date": "2026-03-06",
        }
        first = (await client.post("/api/v1/requests", json=body)).json()
        resp = await client.post(
            "/api/v1/requests", json={**body, "start_date": "2026-03-06", "end_date": "2026-03-09"},
        )
        assert resp.status_code == 409
        problem = resp.json()
        assert problem["kind"] == "overlap"
        assert problem["conflicting_request_ids"] == [first["id"]]

    async def test_overlap_with_approved_request(self, client: AsyncClient, db):
        emp = await seed_employee(db)
        await seed_policy(db)
        await db.commit()

        body = {
            "employee_id": str(emp.id),
            "leave_type": "annual",
            "start_date": "2026-03-02",
            "end_date": "2026-03-06",
        }
        first = (await client.post("/api/v1/requests", json=body)).json()
        resp = await client.put(
            f"/api/v1/requests/{first['id']}/review", json={"action": "approve"},
        )
        assert resp.json()["status"] == "approved"

        resp = await client.post(
            "/api/v1/requests", json={**body, "start_date": "2026-03-04", "end_date": "2026-03-04"},
        )
        assert resp.status_code == 409
        assert resp.json()["kind"] == "overlap"
        assert resp.json()["conflicting_request_ids"] == [first["id"]]

    async def test_insufficient_balance_shortfall(self, client: AsyncClient, db):
        emp = await seed_employee(db)
        await seed_policy(db, total_days_per_year=Decimal("2"))
        await db.commit()

        resp = await client.post(
            "/api/v1/requests",
            json={
                "employee_id": str(emp.id),
                "leave_type": "annual",
                "start_date": "2026-03-02",
                "end_date": "2026-03-06",
            },
        )
        assert resp.status_code == 422
        assert resp.json()["kind"] == "insufficient-balance"
        assert float(resp.json()["shortfall"]) == 3

    async def test_availability_and_adjust(self, client: AsyncClient, db):
        emp = await seed_employee(db)
        await seed_policy(db)
        await db.commit()

        resp = await client.get(
            f"/api/v1/balances/{emp.id}/annual/availability",
            params={"days": 30, "year": 2026},
        )
        assert resp.status_code == 200
        assert resp.json()["sufficient"] is False
        assert float(resp.json()["shortfall"]) == 5

        resp = await client.post(
            f"/api/v1/balances/{emp.id}/annual/adjust",
            json={"days": 5, "reason": "Long service award", "year": 2026},
        )
        assert resp.status_code == 200
        assert float(resp.json()["remaining"]) == 30

        resp = await client.post(
            f"/api/v1/balances/{emp.id}/annual/adjust",
            json={"days": 0, "reason": "Nothing at all", "year": 2026},
        )
        assert resp.status_code == 422


class TestReportAndEventEndpoints:

    async def test_reports_and_event_ack(self, client: AsyncClient, db):
        emp = await seed_employee(db)
        await seed_policy(db, requires_approval=False)
        await db.commit()

        resp = await client.post(
            "/api/v1/requests",
            json={
                "employee_id": str(emp.id),
                "leave_type": "annual",
                "start_date": "2026-01-28",
                "end_date": "2026-02-01",
            },
        )
        assert resp.json()["status"] == "approved"

        yearly = (await client.get("/api/v1/reports/yearly", params={"year": 2026})).json()
        assert float(yearly["totals"]["paid_days"]) == 5

        monthly = (await client.get("/api/v1/reports/monthly", params={"year": 2026})).json()
        months = monthly["employees"][0]["months"]
        assert float(months[0]["paid_days"]) == 4
        assert float(months[1]["paid_days"]) == 1

        current = (await client.get(
            "/api/v1/reports/current-month", params={"as_of": "2026-02-10"},
        )).json()
        assert float(current["totals"]["total_days"]) == 1

        history = await client.get(
            f"/api/v1/reports/history/{emp.id}", params={"year": 2026},
        )
        assert history.json()["request_counts"]["approved"] == 1

        events = (await client.get("/api/v1/events")).json()
        assert sorted(e["event_type"] for e in events) == ["approved", "submitted"]

        resp = await client.put(f"/api/v1/events/{events[0]['id']}/delivered")
        assert resp.status_code == 200
        assert resp.json()["delivered_at"] is not None

        remaining = (await client.get("/api/v1/events")).json()
        assert len(remaining) == 1


class TestBulkEndpoints:

    async def test_bulk_reject(self, client: AsyncClient, db):
        emp = await seed_employee(db)
        await seed_policy(db)
        await db.commit()

        ids = []
        for start, end in (("2026-03-02", "2026-03-03"), ("2026-04-06", "2026-04-07")):
            resp = await client.post(
                "/api/v1/requests",
                json={
                    "employee_id": str(emp.id),
                    "leave_type": "annual",
                    "start_date": start,
                    "end_date": end,
                },
            )
            ids.append(resp.json()["id"])

        resp = await client.put(
            "/api/v1/requests/bulk-review",
            json={"requestIds": ids + [str(uuid.uuid4())], "action": "reject"},
        )
        assert resp.status_code == 200
        result = resp.json()
        assert result["succeeded"] == 2
        assert result["failed"] == 1
        assert result["results"][2]["error_kind"] == "not-found"

    async def test_rollover_all(self, client: AsyncClient, db):
        emp = await seed_employee(db)
        await seed_policy(db, can_carry_forward=True, max_carry_forward_days=Decimal("5"))
        await db.commit()

        await client.get(f"/api/v1/balances/{emp.id}/annual", params={"year": 2025})
        resp = await client.post(
            "/api/v1/balances/rollover",
            json={"leave_type": "Annual", "from_year": 2025, "to_year": 2026},
        )
        assert resp.status_code == 200
        summary = resp.json()
        assert summary["balances_rolled"] == 1
        assert float(summary["balances"][0]["carried_forward"]) == 5

        resp = await client.post(
            "/api/v1/balances/rollover",
            json={"leave_type": "annual", "from_year": 2026, "to_year": 2026},
        )
        assert resp.status_code == 422
