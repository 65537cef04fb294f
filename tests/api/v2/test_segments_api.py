"""
Tests for the Segments API

Covers segment CRUD, the field catalog, preview and evaluation, static
member management, recipient resolution and problem-detail errors.
"""

import pytest
import pytest_asyncio
from httpx import AsyncClient

BASE = "/api/v2/segments"

ACTIVE_RULES = {
    "operator": "AND",
    "conditions": [{"field": "status", "operator": "equals", "value": "active"}],
    "groups": [],
}


# ============================================
# Fixtures
# ============================================


@pytest_asyncio.fixture
async def dynamic_segment(client: AsyncClient) -> dict:
    response = await client.post(
        f"{BASE}/", json={"name": "Active contacts", "segment_type": "dynamic", "rules": ACTIVE_RULES}
    )
    assert response.status_code == 201
    return response.json()


@pytest_asyncio.fixture
async def static_segment(client: AsyncClient) -> dict:
    response = await client.post(f"{BASE}/", json={"name": "VIP list", "segment_type": "static"})
    assert response.status_code == 201
    return response.json()


# ============================================
# Field catalog
# ============================================


class TestFields:
    @pytest.mark.asyncio
    async def test_fields_catalog(self, client: AsyncClient):
        response = await client.get(f"{BASE}/fields")
        assert response.status_code == 200

        fields = {f["key"]: f for f in response.json()["fields"]}
        assert "cashback_info.current_balance" in fields

        status = fields["status"]
        assert status["type"] == "select"
        assert {o["value"] for o in status["options"]} >= {"active", "inactive"}
        assert [o["operator"] for o in status["operators"]] == ["equals", "not_equals", "in", "not_in"]

        opt_in = {o["operator"]: o for o in fields["opt_in_sms"]["operators"]}
        assert opt_in["is_false"]["requires_value"] is False

        lead_score = {o["operator"]: o for o in fields["lead_score"]["operators"]}
        assert lead_score["between"]["requires_value"] is True


# ============================================
# CRUD
# ============================================


class TestSegmentCRUD:
    @pytest.mark.asyncio
    async def test_create_segment(self, dynamic_segment: dict):
        assert dynamic_segment["name"] == "Active contacts"
        assert dynamic_segment["segment_type"] == "dynamic"
        assert dynamic_segment["contact_count"] == 0
        assert dynamic_segment["rules"]["conditions"][0]["field"] == "status"
        assert dynamic_segment["rules"]["conditions"][0]["id"]

    @pytest.mark.asyncio
    async def test_rules_round_trip_verbatim(self, client: AsyncClient):
        rules = {
            "id": "root",
            "operator": "OR",
            "conditions": [{"id": "c1", "field": "lead_score", "operator": "between", "value": 10, "value2": 20}],
            "groups": [
                {
                    "id": "g1",
                    "operator": "AND",
                    "conditions": [{"id": "c2", "field": "tags", "operator": "array_contains", "value": "vip", "value2": None}],
                    "groups": [],
                }
            ],
        }
        created = await client.post(f"{BASE}/", json={"name": "Round trip", "rules": rules})
        assert created.status_code == 201

        fetched = await client.get(f"{BASE}/{created.json()['id']}")
        assert fetched.json()["rules"] == rules

    @pytest.mark.asyncio
    async def test_list_segments(self, client: AsyncClient, dynamic_segment, static_segment):
        response = await client.get(f"{BASE}/")
        assert response.status_code == 200
        assert response.json()["total"] == 2

        response = await client.get(f"{BASE}/", params={"segment_type": "static"})
        assert [s["id"] for s in response.json()["items"]] == [static_segment["id"]]

    @pytest.mark.asyncio
    async def test_get_segment_not_found(self, client: AsyncClient):
        response = await client.get(f"{BASE}/does-not-exist")
        assert response.status_code == 404
        assert response.headers["content-type"].startswith("application/problem+json")

        problem = response.json()
        assert problem["code"] == "RES_001"
        assert problem["instance"] == f"{BASE}/does-not-exist"
        assert problem["trace_id"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_create_duplicate_name(self, client: AsyncClient, dynamic_segment):
        response = await client.post(f"{BASE}/", json={"name": "Active contacts", "rules": ACTIVE_RULES})
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_create_with_invalid_rules(self, client: AsyncClient):
        rules = {
            "operator": "AND",
            "conditions": [
                {"id": "bad-field", "field": "shoe_size", "operator": "equals", "value": "42"},
                {"id": "bad-op", "field": "tags", "operator": "greater_than", "value": 1},
            ],
        }
        response = await client.post(f"{BASE}/", json={"name": "Broken", "rules": rules})
        assert response.status_code == 422

        problem = response.json()
        assert problem["code"] == "VAL_002"
        assert [e["node_id"] for e in problem["errors"]] == ["bad-field", "bad-op"]

    @pytest.mark.asyncio
    async def test_unknown_operator_is_a_request_error(self, client: AsyncClient):
        rules = {"conditions": [{"field": "status", "operator": "regex", "value": "act"}]}
        response = await client.post(f"{BASE}/", json={"name": "Typo", "rules": rules})
        assert response.status_code == 422
        assert response.json()["code"] == "VAL_001"

    @pytest.mark.asyncio
    async def test_update_segment(self, client: AsyncClient, dynamic_segment):
        response = await client.patch(
            f"{BASE}/{dynamic_segment['id']}", json={"description": "Reachable contacts"}
        )
        assert response.status_code == 200
        assert response.json()["description"] == "Reachable contacts"
        assert response.json()["rules"] == dynamic_segment["rules"]

    @pytest.mark.asyncio
    async def test_update_rejects_null_name(self, client: AsyncClient, dynamic_segment):
        """Explicit null name is a request error and leaves the segment untouched."""
        response = await client.patch(f"{BASE}/{dynamic_segment['id']}", json={"name": None})
        assert response.status_code == 422
        assert response.json()["code"] == "VAL_001"

        segment = (await client.get(f"{BASE}/{dynamic_segment['id']}")).json()
        assert segment["name"] == "Active contacts"

    @pytest.mark.asyncio
    async def test_delete_segment(self, client: AsyncClient, static_segment):
        response = await client.delete(f"{BASE}/{static_segment['id']}")
        assert response.status_code == 204

        response = await client.get(f"{BASE}/{static_segment['id']}")
        assert response.status_code == 404


# ============================================
# Preview and evaluation
# ============================================


class TestEvaluation:
    @pytest.mark.asyncio
    async def test_preview(self, client: AsyncClient, sample_contacts):
        response = await client.post(f"{BASE}/preview", json={"rules": ACTIVE_RULES, "sample_size": 5})
        assert response.status_code == 200

        data = response.json()
        assert data["total_matches"] == 3
        assert data["sample_emails"] == ["ana@example.com", "bruno@example.com", "davi@example.com"]
        assert data["execution_time_ms"] >= 0

    @pytest.mark.asyncio
    async def test_preview_nested_rules(self, client: AsyncClient, sample_contacts):
        rules = {
            "operator": "AND",
            "conditions": [{"field": "lifecycle_stage", "operator": "equals", "value": "customer"}],
            "groups": [
                {
                    "operator": "OR",
                    "conditions": [
                        {"field": "tags", "operator": "array_contains", "value": "VIP"},
                        {"field": "cashback_info.current_balance", "operator": "greater_than", "value": 100},
                    ],
                }
            ],
        }
        response = await client.post(f"{BASE}/preview", json={"rules": rules})
        assert response.json()["sample_emails"] == ["ana@example.com"]

    @pytest.mark.asyncio
    async def test_evaluate_refreshes_count(self, client: AsyncClient, sample_contacts, dynamic_segment):
        response = await client.post(f"{BASE}/{dynamic_segment['id']}/evaluate")
        assert response.status_code == 200
        assert response.json()["contact_count"] == 3

        segment = (await client.get(f"{BASE}/{dynamic_segment['id']}")).json()
        assert segment["contact_count"] == 3
        assert segment["last_evaluated_at"] is not None

    @pytest.mark.asyncio
    async def test_emails_leave_count_untouched(self, client: AsyncClient, sample_contacts, dynamic_segment):
        response = await client.get(f"{BASE}/{dynamic_segment['id']}/emails")
        assert response.status_code == 200
        assert response.json()["total"] == 3

        segment = (await client.get(f"{BASE}/{dynamic_segment['id']}")).json()
        assert segment["contact_count"] == 0


# ============================================
# Static members
# ============================================


class TestMembers:
    @pytest.mark.asyncio
    async def test_add_and_remove_members(self, client: AsyncClient, static_segment):
        url = f"{BASE}/{static_segment['id']}/members"

        response = await client.post(url, json={"emails": ["ana@example.com", "bruno@example.com"]})
        assert response.status_code == 200
        assert response.json()["contact_count"] == 2

        response = await client.post(url, json={"emails": ["ana@example.com"]})
        assert response.json()["contact_count"] == 2

        response = await client.post(f"{url}/remove", json={"emails": ["ana@example.com"]})
        assert response.json()["contact_count"] == 1
        assert [m["email"] for m in response.json()["items"]] == ["bruno@example.com"]

        response = await client.get(url)
        assert response.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_members_on_dynamic_segment(self, client: AsyncClient, dynamic_segment):
        response = await client.post(
            f"{BASE}/{dynamic_segment['id']}/members", json={"emails": ["ana@example.com"]}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "BIZ_001"

    @pytest.mark.asyncio
    async def test_empty_email_list(self, client: AsyncClient, static_segment):
        response = await client.post(f"{BASE}/{static_segment['id']}/members", json={"emails": []})
        assert response.status_code == 422


# ============================================
# Recipients
# ============================================


class TestRecipients:
    @pytest.mark.asyncio
    async def test_resolve_recipients(self, client: AsyncClient, sample_contacts, dynamic_segment, static_segment):
        await client.post(f"{BASE}/{static_segment['id']}/members", json={"emails": ["bruno@example.com"]})

        response = await client.post(
            f"{BASE}/recipients",
            json={"segment_ids": [dynamic_segment["id"]], "exclude_segment_ids": [static_segment["id"]]},
        )
        assert response.status_code == 200
        assert response.json() == {"emails": ["ana@example.com", "davi@example.com"], "total": 2}

    @pytest.mark.asyncio
    async def test_unknown_segment(self, client: AsyncClient):
        response = await client.post(f"{BASE}/recipients", json={"segment_ids": ["missing"]})
        assert response.status_code == 404


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Correlation-ID" in response.headers
