"""
API tests for the milestones blueprint (/api/v1/milestones).

Auth is disabled in the testing config, so callers are identified by the
X-Role / X-Student-Id headers; API-key and JWT paths are exercised by
enabling auth through the environment.

Covers:
  - template CRUD + role gating
  - override upsert / update / list + error mapping (400 / 404)
  - student feed: STU callers read only their own feed
  - reminders endpoint
  - API-key and Bearer JWT identity
  - health endpoints and security headers
  - per-app rate limiting on the milestones blueprint
"""

import pytest

from gradtrack import create_app
from gradtrack.config import TestingConfig, config
from gradtrack.models.document import STATUS_APPROVED
from gradtrack.services.jwt_service import generate_access_token

BASE = "/api/v1/milestones"

ADMIN = {"X-Role": "CGSADM"}
STAFF = {"X-Role": "CGSS"}
SUPERVISOR = {"X-Role": "SUV"}


def _student_headers(student_id):
    return {"X-Role": "STU", "X-Student-Id": student_id}


# ── Templates ─────────────────────────────────────────────────────────────────


class TestTemplateEndpoints:
    def test_create_and_list(self, client):
        res = client.post(BASE, json={"name": "Proposal", "default_due_days": 180}, headers=ADMIN)
        assert res.status_code == 201
        created = res.get_json()
        assert created["sort_order"] == 1
        assert created["document_type"] == "Proposal"

        res = client.get(BASE, headers=SUPERVISOR)
        assert res.status_code == 200
        body = res.get_json()
        assert body["total"] == 1
        assert body["templates"][0]["name"] == "Proposal"

    def test_list_with_program_filter(self, client, make_template):
        make_template("Global", 1)
        make_template("CS only", 2, program_id="PHD-CS")
        make_template("Bio only", 3, program_id="MSC-BIO")

        res = client.get(f"{BASE}?program_id=PHD-CS", headers=ADMIN)

        assert [t["name"] for t in res.get_json()["templates"]] == ["Global", "CS only"]

    def test_supervisor_cannot_create(self, client):
        res = client.post(BASE, json={"name": "Proposal"}, headers=SUPERVISOR)
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_student_cannot_list_catalogue(self, client):
        res = client.get(BASE, headers=_student_headers("S1001"))
        assert res.status_code == 403

    def test_create_validation_error_is_400(self, client):
        res = client.post(BASE, json={"name": ""}, headers=STAFF)
        assert res.status_code == 400
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert "name" in body["details"]

    def test_get_update_delete(self, client, make_template):
        template = make_template("Proposal", 1)

        res = client.get(f"{BASE}/{template.id}", headers=ADMIN)
        assert res.status_code == 200

        res = client.put(f"{BASE}/{template.id}", json={"alert_lead_days": 21}, headers=ADMIN)
        assert res.status_code == 200
        assert res.get_json()["alert_lead_days"] == 21

        res = client.delete(f"{BASE}/{template.id}", headers=ADMIN)
        assert res.status_code == 200
        assert res.get_json()["template"]["is_active"] is False

        res = client.get(BASE, headers=ADMIN)
        assert res.get_json()["total"] == 0

    def test_get_missing_is_404(self, client):
        res = client.get(f"{BASE}/4040", headers=ADMIN)
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_update_missing_is_404(self, client):
        res = client.put(f"{BASE}/4040", json={"description": "new"}, headers=ADMIN)
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_delete_missing_is_404(self, client):
        res = client.delete(f"{BASE}/4040", headers=ADMIN)
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"


# ── Overrides ─────────────────────────────────────────────────────────────────


class TestOverrideEndpoints:
    def test_upsert_twice_keeps_single_row(self, client, student, proposal_review):
        payload = {
            "milestone_name": "Review",
            "student_id": student.id,
            "deadline_date": "2025-06-01T17:00:00",
            "reason": "extension",
            "alert_lead_days": 14,
        }
        first = client.post(f"{BASE}/overrides", json=payload, headers=STAFF)
        assert first.status_code == 200

        payload["deadline_date"] = "2025-07-01"
        second = client.post(f"{BASE}/overrides", json=payload, headers=STAFF)
        assert second.status_code == 200
        assert second.get_json()["id"] == first.get_json()["id"]

        res = client.get(f"{BASE}/overrides?student_id={student.id}", headers=STAFF)
        body = res.get_json()
        assert body["kind"] == "override_list"
        assert body["total"] == 1
        assert body["overrides"][0]["deadline_date"] == "2025-07-01T00:00:00"
        assert body["overrides"][0]["alert_lead_days"] == 14

    def test_unknown_milestone_is_404(self, client, student, proposal_review):
        res = client.post(
            f"{BASE}/overrides",
            json={"milestone_name": "Nonexistent", "student_id": student.id, "deadline_date": "2025-06-01"},
            headers=ADMIN,
        )
        assert res.status_code == 404

    def test_negative_lead_days_is_400(self, client, student, proposal_review):
        res = client.post(
            f"{BASE}/overrides",
            json={
                "milestone_name": "Review",
                "student_id": student.id,
                "deadline_date": "2025-06-01",
                "alert_lead_days": -3,
            },
            headers=ADMIN,
        )
        assert res.status_code == 400
        assert "alert_lead_days" in res.get_json()["details"]

        listing = client.get(f"{BASE}/overrides", headers=ADMIN).get_json()
        assert listing["total"] == 0

    def test_missing_deadline_is_400_required(self, client, student, proposal_review):
        res = client.post(
            f"{BASE}/overrides",
            json={"milestone_name": "Review", "student_id": student.id},
            headers=ADMIN,
        )
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_caller_recorded_when_staff_member(self, client, student, staff, proposal_review):
        res = client.post(
            f"{BASE}/overrides",
            json={"milestone_name": "Review", "student_id": student.id, "deadline_date": "2025-06-01"},
            headers={**STAFF, "X-User-Id": staff.id},
        )
        assert res.get_json()["updated_by"] == staff.id

    def test_update_override(self, client, student, proposal_review):
        created = client.post(
            f"{BASE}/overrides",
            json={"milestone_name": "Review", "student_id": student.id, "deadline_date": "2025-06-01"},
            headers=ADMIN,
        ).get_json()

        res = client.put(f"{BASE}/overrides/{created['id']}", json={"reason": "medical"}, headers=ADMIN)

        assert res.status_code == 200
        assert res.get_json()["reason"] == "medical"

    def test_update_missing_override_is_404(self, client):
        res = client.put(f"{BASE}/overrides/4040", json={"reason": "medical"}, headers=ADMIN)
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_supervisor_cannot_list_overrides(self, client):
        res = client.get(f"{BASE}/overrides", headers=SUPERVISOR)
        assert res.status_code == 403


# ── Student feed ──────────────────────────────────────────────────────────────


class TestStudentFeedEndpoints:
    def test_student_reads_own_feed(self, client, student, proposal_review, make_document):
        make_document(student.id, "Proposal", STATUS_APPROVED)

        res = client.get(f"{BASE}/student", headers=_student_headers(student.id))

        assert res.status_code == 200
        body = res.get_json()
        assert body["kind"] == "student_feed"
        assert body["student_id"] == student.id
        assert [(m["name"], m["status"]) for m in body["milestones"]] == [
            ("Proposal", "completed"),
            ("Review", "in-progress"),
        ]

    def test_student_query_param_cannot_escape_own_id(
        self, client, student, other_student, proposal_review, make_document,
    ):
        make_document(other_student.id, "Proposal", STATUS_APPROVED)

        res = client.get(
            f"{BASE}/student?student_id={other_student.id}",
            headers=_student_headers(student.id),
        )

        body = res.get_json()
        assert body["student_id"] == student.id
        assert body["milestones"][0]["status"] == "in-progress"

    def test_supervisor_names_student(self, client, student, proposal_review):
        res = client.get(f"{BASE}/student?student_id={student.id}", headers=SUPERVISOR)
        assert res.status_code == 200
        assert res.get_json()["student_id"] == student.id

    def test_staff_without_student_id_is_400(self, client, proposal_review):
        res = client.get(f"{BASE}/student", headers=ADMIN)
        assert res.status_code == 400

    def test_reminders(self, client, student, proposal_review):
        client.post(
            f"{BASE}/overrides",
            json={
                "milestone_name": "Proposal",
                "student_id": student.id,
                "deadline_date": "2025-06-01T17:00:00",
                "alert_lead_days": 14,
            },
            headers=ADMIN,
        )

        res = client.get(
            f"{BASE}/student/reminders?as_of=2025-06-02",
            headers=_student_headers(student.id),
        )

        body = res.get_json()
        assert body["kind"] == "student_reminders"
        assert body["as_of"] == "2025-06-02T00:00:00"
        assert [(r["name"], r["is_overdue"]) for r in body["reminders"]] == [("Proposal", True)]

    def test_reminders_bad_as_of_is_400(self, client, student):
        res = client.get(
            f"{BASE}/student/reminders?as_of=yesterday",
            headers=_student_headers(student.id),
        )
        assert res.status_code == 400


# ── Authentication ────────────────────────────────────────────────────────────


class TestAuthentication:
    @pytest.fixture()
    def auth_enabled(self, monkeypatch):
        monkeypatch.setenv("API_AUTH_ENABLED", "true")
        monkeypatch.setenv("API_KEYS", "admin-key:CGSADM,stu-key:STU:S1001")

    def test_missing_credentials_is_401(self, client, auth_enabled):
        res = client.get(BASE)
        assert res.status_code == 401

    def test_invalid_key_is_401(self, client, auth_enabled):
        res = client.get(BASE, headers={"X-API-Key": "wrong"})
        assert res.status_code == 401

    def test_admin_key(self, client, auth_enabled, proposal_review):
        res = client.get(BASE, headers={"X-API-Key": "admin-key"})
        assert res.status_code == 200
        assert res.get_json()["total"] == 2

    def test_student_key_binds_student_id(self, client, auth_enabled, student, proposal_review):
        res = client.get(f"{BASE}/student", headers={"X-API-Key": "stu-key"})
        assert res.status_code == 200
        assert res.get_json()["student_id"] == "S1001"

    def test_headers_ignored_when_auth_enabled(self, client, auth_enabled):
        res = client.get(BASE, headers={"X-API-Key": "stu-key", "X-Role": "CGSADM"})
        assert res.status_code == 403

    def test_bearer_jwt(self, client, auth_enabled, student, proposal_review):
        token = generate_access_token("S1001", "STU", student_id="S1001")

        res = client.get(f"{BASE}/student", headers={"Authorization": f"Bearer {token}"})

        assert res.status_code == 200
        assert res.get_json()["student_id"] == "S1001"

    def test_invalid_jwt_falls_back_to_key_check(self, client, auth_enabled):
        res = client.get(BASE, headers={"Authorization": "Bearer not-a-token"})
        assert res.status_code == 401


# ── Health & headers ──────────────────────────────────────────────────────────


class TestHealthAndHeaders:
    def test_health(self, client):
        assert client.get("/api/v1/health").status_code == 200
        assert client.get("/api/v1/health/ready").get_json() == {"status": "ok"}

    def test_live_reports_database(self, client, proposal_review):
        body = client.get("/api/v1/health/live").get_json()
        assert body["checks"]["database"]["status"] == "ok"
        assert body["checks"]["templates"]["active"] == 2

    def test_security_and_timing_headers(self, client):
        res = client.get(BASE, headers=ADMIN)
        assert res.headers["X-Content-Type-Options"] == "nosniff"
        assert res.headers["X-Frame-Options"] == "DENY"
        assert "X-Request-ID" in res.headers
        assert "X-Request-Duration-Ms" in res.headers

    def test_unknown_api_path_is_json_404(self, client):
        res = client.get("/api/v1/nothing-here", headers=ADMIN)
        assert res.status_code == 404
        assert res.get_json()["error"] == "Not found"


# ── Rate limiting ─────────────────────────────────────────────────────────────


class TestRateLimiting:
    @pytest.fixture()
    def limited_app(self, monkeypatch):
        class LimitedConfig(TestingConfig):
            RATELIMIT_ENABLED = True
            MILESTONE_RATE_LIMIT = "1/minute"

        monkeypatch.setitem(config, "limited", LimitedConfig)
        return create_app("limited")

    def test_limit_enforced_on_app_built_after_testing_app(self, limited_app):
        limited = limited_app.test_client()

        codes = [limited.get(BASE, headers=ADMIN).status_code for _ in range(3)]

        assert codes == [200, 429, 429]
        assert limited.get(BASE, headers=ADMIN).get_json()["code"] == "ERR_RATE_LIMITED"

    def test_health_exempt_from_limit(self, limited_app):
        limited = limited_app.test_client()

        codes = [limited.get("/api/v1/health/ready").status_code for _ in range(3)]

        assert codes == [200, 200, 200]

    def test_testing_app_stays_unlimited(self, client, limited_app):
        codes = [client.get(BASE, headers=ADMIN).status_code for _ in range(3)]

        assert codes == [200, 200, 200]
