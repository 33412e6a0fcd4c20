"""HTTP tests — auth, problem+json errors, and the leave / approval / user
endpoints end to end.

Seed data is committed before each request: the app uses its own session.
"""

from __future__ import annotations

import uuid
from datetime import date

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import UserRole
from leaveflow.leave.ledger import BalanceLedger
from tests.conftest import (
    auth_headers,
    create_access_token,
    leave_payload,
    seed_employee,
)

# Thu → Wed across a weekend: five working days
FROM = date(2030, 1, 10)
TO = date(2030, 1, 16)


async def _create(client: AsyncClient, employee, reliever) -> dict:
    resp = await client.post(
        "/api/v1/leaves",
        json=leave_payload(reliever.id, from_date=FROM, to_date=TO),
        headers=auth_headers(employee),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


# ═════════════════════════════════════════════════════════════════════
# 1. Auth + system
# ═════════════════════════════════════════════════════════════════════


class TestAuth:

    async def test_health_needs_no_auth(self, client: AsyncClient):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    async def test_missing_token(self, client: AsyncClient):
        resp = await client.get("/api/v1/users/me")
        assert resp.status_code == 401

    async def test_expired_token(self, client: AsyncClient, db: AsyncSession, employee):
        await db.commit()
        token = create_access_token(employee.id, expired=True)
        resp = await client.get(
            "/api/v1/users/me", headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 401
        assert "expired" in resp.json()["detail"].lower()

    async def test_wrong_token_type(self, client: AsyncClient, db: AsyncSession, employee):
        await db.commit()
        token = create_access_token(employee.id, token_type="refresh")
        resp = await client.get(
            "/api/v1/users/me", headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 401

    async def test_inactive_user_rejected(self, client: AsyncClient, db: AsyncSession):
        gone = await seed_employee(db, is_active=False)
        await db.commit()
        resp = await client.get("/api/v1/users/me", headers=auth_headers(gone))
        assert resp.status_code == 401

    async def test_role_is_read_from_database(self, client: AsyncClient, db: AsyncSession, employee):
        """A token claiming a higher role does not grant it."""
        await db.commit()
        token = create_access_token(employee.id, role=UserRole.admin)
        resp = await client.get(
            "/api/v1/users", headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 403
        assert resp.headers["content-type"].startswith("application/problem+json")

    async def test_rate_limit(self, client: AsyncClient):
        statuses = [(await client.get("/api/v1/health")).status_code for _ in range(61)]
        assert statuses[:60] == [200] * 60
        assert statuses[60] == 429


# ═════════════════════════════════════════════════════════════════════
# 2. Users
# ═════════════════════════════════════════════════════════════════════


class TestUsersAPI:

    async def test_me_includes_balance(self, client: AsyncClient, db: AsyncSession, employee):
        await db.commit()
        resp = await client.get("/api/v1/users/me", headers=auth_headers(employee))

        assert resp.status_code == 200
        body = resp.json()
        assert body["staffId"] == employee.staff_id
        assert body["leaveBalance"] == {"total": 28, "available": 28, "used": 0}

    async def test_relievers_exclude_self_and_inactive(
        self, client: AsyncClient, db: AsyncSession, employee, reliever,
    ):
        await seed_employee(db, first_name="Gone", is_active=False)
        await db.commit()

        resp = await client.get("/api/v1/users/relievers", headers=auth_headers(employee))

        assert resp.status_code == 200
        assert [r["id"] for r in resp.json()] == [str(reliever.id)]

    async def test_list_employees_hr_only(
        self, client: AsyncClient, db: AsyncSession, employee, hr_user,
    ):
        await db.commit()

        denied = await client.get("/api/v1/users", headers=auth_headers(employee))
        allowed = await client.get("/api/v1/users?page_size=1", headers=auth_headers(hr_user))

        assert denied.status_code == 403
        assert allowed.status_code == 200
        assert allowed.json()["meta"]["total"] == 2

    async def test_list_employees_sort_on_non_column(
        self, client: AsyncClient, db: AsyncSession, hr_user,
    ):
        await db.commit()

        for field in ("full_name", "leave_requests"):
            resp = await client.get(f"/api/v1/users?sort={field}", headers=auth_headers(hr_user))
            assert resp.status_code == 422
            assert "sort" in resp.json()["errors"]

        ok = await client.get("/api/v1/users?sort=-first_name", headers=auth_headers(hr_user))
        assert ok.status_code == 200

    async def test_admin_sets_leave_total(
        self, client: AsyncClient, db: AsyncSession, employee, reliever, admin_user,
    ):
        await db.commit()
        await _create(client, employee, reliever)

        resp = await client.put(
            f"/api/v1/users/{employee.id}/leave-balance",
            json={"total": 30},
            headers=auth_headers(admin_user),
        )
        assert resp.status_code == 200
        assert resp.json() == {"total": 30, "available": 25, "used": 5}

        too_low = await client.put(
            f"/api/v1/users/{employee.id}/leave-balance",
            json={"total": 4},
            headers=auth_headers(admin_user),
        )
        assert too_low.status_code == 422

    async def test_non_admin_cannot_set_leave_total(
        self, client: AsyncClient, db: AsyncSession, employee, hr_user,
    ):
        await db.commit()
        resp = await client.put(
            f"/api/v1/users/{employee.id}/leave-balance",
            json={"total": 60},
            headers=auth_headers(hr_user),
        )
        assert resp.status_code == 403


# ═════════════════════════════════════════════════════════════════════
# 3. Leaves
# ═════════════════════════════════════════════════════════════════════


class TestLeavesAPI:

    async def test_create_and_balance(
        self, client: AsyncClient, db: AsyncSession, employee, reliever,
    ):
        await db.commit()
        body = await _create(client, employee, reliever)

        assert body["totalDays"] == 5
        assert body["status"] == "Pending"
        assert body["stage"] == 1
        assert body["leaveType"] == "Annual Leave"
        assert body["hodApprovalStatus"] == "pending"
        assert body["reliever"]["id"] == str(reliever.id)

        resp = await client.get("/api/v1/users/me/balance", headers=auth_headers(employee))
        assert resp.json() == {"total": 28, "available": 23, "used": 5}

    async def test_create_weekend_only_is_problem_json(
        self, client: AsyncClient, db: AsyncSession, employee, reliever,
    ):
        await db.commit()
        resp = await client.post(
            "/api/v1/leaves",
            json=leave_payload(reliever.id, from_date=date(2030, 1, 12), to_date=date(2030, 1, 13)),
            headers=auth_headers(employee),
        )

        assert resp.status_code == 422
        problem = resp.json()
        assert problem["type"].endswith("/validation-error")
        assert problem["instance"] == "/api/v1/leaves"
        assert "dates" in problem["errors"]

    async def test_create_missing_reliever(
        self, client: AsyncClient, db: AsyncSession, employee, reliever,
    ):
        await db.commit()
        payload = leave_payload(reliever.id)
        del payload["relieverId"]

        resp = await client.post("/api/v1/leaves", json=payload, headers=auth_headers(employee))

        assert resp.status_code == 422
        assert "relieverId" in resp.json()["errors"]

    async def test_create_insufficient_balance(
        self, client: AsyncClient, db: AsyncSession, reliever,
    ):
        poor = await seed_employee(db, leave_total=2)
        await db.commit()

        resp = await client.post(
            "/api/v1/leaves",
            json=leave_payload(reliever.id, from_date=FROM, to_date=TO),
            headers=auth_headers(poor),
        )

        assert resp.status_code == 422
        assert resp.json()["type"].endswith("/insufficient-balance")

    async def test_my_leaves_and_detail(
        self, client: AsyncClient, db: AsyncSession, employee, reliever,
    ):
        await db.commit()
        created = await _create(client, employee, reliever)

        mine = await client.get("/api/v1/leaves/my-leaves", headers=auth_headers(employee))
        assert mine.status_code == 200
        assert [item["id"] for item in mine.json()["data"]] == [created["id"]]

        detail = await client.get(
            f"/api/v1/leaves/{created['id']}", headers=auth_headers(employee),
        )
        assert detail.status_code == 200
        assert detail.json()["totalDays"] == 5

        missing = await client.get(
            f"/api/v1/leaves/{uuid.uuid4()}", headers=auth_headers(employee),
        )
        assert missing.status_code == 404

    async def test_edit_then_cancel(
        self, client: AsyncClient, db: AsyncSession, employee, reliever,
    ):
        await db.commit()
        created = await _create(client, employee, reliever)

        edited = await client.put(
            f"/api/v1/leaves/{created['id']}",
            json={"toDate": "2030-01-11"},
            headers=auth_headers(employee),
        )
        assert edited.status_code == 200
        assert edited.json()["totalDays"] == 2

        cancelled = await client.put(
            f"/api/v1/leaves/{created['id']}/cancel", headers=auth_headers(employee),
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "Cancelled"

        again = await client.put(
            f"/api/v1/leaves/{created['id']}/cancel", headers=auth_headers(employee),
        )
        assert again.status_code == 409

        assert (await BalanceLedger.get_balance(db, employee.id)).available == 28

    async def test_delete_pending(
        self, client: AsyncClient, db: AsyncSession, employee, reliever,
    ):
        await db.commit()
        created = await _create(client, employee, reliever)

        resp = await client.delete(
            f"/api/v1/leaves/{created['id']}", headers=auth_headers(employee),
        )
        assert resp.status_code == 204

        gone = await client.get(
            f"/api/v1/leaves/{created['id']}", headers=auth_headers(employee),
        )
        assert gone.status_code == 404
        balance = await client.get("/api/v1/users/me/balance", headers=auth_headers(employee))
        assert balance.json()["available"] == 28

    async def test_list_requires_approver(
        self, client: AsyncClient, db: AsyncSession, employee, reliever, hr_user,
    ):
        await db.commit()
        await _create(client, employee, reliever)

        denied = await client.get("/api/v1/leaves", headers=auth_headers(employee))
        allowed = await client.get(
            "/api/v1/leaves?status=Pending&department=VAS", headers=auth_headers(hr_user),
        )

        assert denied.status_code == 403
        assert allowed.status_code == 200
        assert allowed.json()["meta"]["total"] == 1


# ═════════════════════════════════════════════════════════════════════
# 4. Approvals
# ═════════════════════════════════════════════════════════════════════


class TestApprovalsAPI:

    async def test_per_role_chain(
        self, client: AsyncClient, db: AsyncSession,
        employee, reliever, hod, hr_user, ged_user,
    ):
        await db.commit()
        leave_id = (await _create(client, employee, reliever))["id"]

        queue = await client.get("/api/v1/approvals/hod/queue", headers=auth_headers(hod))
        assert [item["id"] for item in queue.json()["data"]] == [leave_id]

        for role, actor in (("hod", hod), ("hr", hr_user), ("ged", ged_user)):
            resp = await client.put(
                f"/api/v1/approvals/{leave_id}/{role}/approve",
                json={"comments": f"{role} ok"},
                headers=auth_headers(actor),
            )
            assert resp.status_code == 200, resp.text

        body = resp.json()
        assert body["status"] == "Approved"
        assert body["gedApprovalStatus"] == "approved"
        assert body["hrApprovalComment"] == "hr ok"

        progress = await client.get(
            f"/api/v1/leaves/{leave_id}/progress", headers=auth_headers(employee),
        )
        assert [s["role"] for s in progress.json()["approvalFlow"]] == ["HOD", "HR", "GED"]
        assert progress.json()["currentRole"] is None

    async def test_hr_before_hod_is_409(
        self, client: AsyncClient, db: AsyncSession, employee, reliever, hr_user,
    ):
        await db.commit()
        leave_id = (await _create(client, employee, reliever))["id"]

        resp = await client.put(
            f"/api/v1/approvals/{leave_id}/hr/approve", json={}, headers=auth_headers(hr_user),
        )

        assert resp.status_code == 409
        assert resp.json()["type"].endswith("/precondition-failed")

    async def test_hod_approving_twice_is_conflict(
        self, client: AsyncClient, db: AsyncSession, employee, reliever, hod,
    ):
        await db.commit()
        leave_id = (await _create(client, employee, reliever))["id"]
        url = f"/api/v1/approvals/{leave_id}/hod/approve"

        first = await client.put(url, json={}, headers=auth_headers(hod))
        second = await client.put(url, json={}, headers=auth_headers(hod))

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json()["type"].endswith("/conflict")

    async def test_other_department_hod_forbidden(
        self, client: AsyncClient, db: AsyncSession, employee, reliever, other_hod,
    ):
        await db.commit()
        leave_id = (await _create(client, employee, reliever))["id"]

        resp = await client.put(
            f"/api/v1/approvals/{leave_id}/hod/approve", json={}, headers=auth_headers(other_hod),
        )
        assert resp.status_code == 403

    async def test_generic_reject_refunds(
        self, client: AsyncClient, db: AsyncSession, employee, reliever, hod, hr_user,
    ):
        await db.commit()
        leave_id = (await _create(client, employee, reliever))["id"]

        await client.put(
            f"/api/v1/leaves/{leave_id}/approve", json={}, headers=auth_headers(hod),
        )
        no_reason = await client.put(
            f"/api/v1/leaves/{leave_id}/reject", json={}, headers=auth_headers(hr_user),
        )
        rejected = await client.put(
            f"/api/v1/leaves/{leave_id}/reject",
            json={"comments": "Month-end close"},
            headers=auth_headers(hr_user),
        )

        assert no_reason.status_code == 422
        assert rejected.status_code == 200
        assert rejected.json()["status"] == "Rejected"
        assert rejected.json()["hrApprovalStatus"] == "rejected"

        balance = await client.get("/api/v1/users/me/balance", headers=auth_headers(employee))
        assert balance.json() == {"total": 28, "available": 28, "used": 0}

    async def test_generic_approve_requires_approver_role(
        self, client: AsyncClient, db: AsyncSession, employee, reliever,
    ):
        await db.commit()
        leave_id = (await _create(client, employee, reliever))["id"]

        resp = await client.put(
            f"/api/v1/leaves/{leave_id}/approve", json={}, headers=auth_headers(reliever),
        )
        assert resp.status_code == 403
