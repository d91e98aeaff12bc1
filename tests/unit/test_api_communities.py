"""Tests for community list, detail and creation endpoints."""

from __future__ import annotations

import time
from typing import Any
from unittest.mock import MagicMock

from eth_account import Account
from eth_account.messages import encode_defunct
from fastapi.testclient import TestClient

from openbands.attestation.base import AttestationType
from openbands.membership.creation import (
    CommunityRequest,
    resolve_requirements,
    signing_message,
)
from tests.fixtures.app import ALICE, BOB, make_app, seed_community
from tests.fixtures.attestation import FakeAttestationReader

# -- Helpers -------------------------------------------------------------------


def _signed_body(account: Any, **fields: Any) -> dict[str, Any]:
    """A create-community body signed by ``account`` the way the web client signs it."""
    body: dict[str, Any] = {
        "name": "German Engineers",
        "description": "A place for German passport holders in engineering.",
        "timestamp": int(time.time() * 1000),
        "walletAddress": account.address,
    }
    body.update(fields)
    request = CommunityRequest(
        name=body.get("name"),
        description=body.get("description"),
        wallet_address=body["walletAddress"],
        signature=None,
        timestamp=body["timestamp"],
        short_description=body.get("shortDescription"),
        rules=body.get("rules"),
        badge_requirements=body.get("badgeRequirements"),
        primary_attestation_type=body.get("primaryAttestationType"),
        primary_attestation_values=body.get("primaryAttestationValues"),
        attestation_type=body.get("attestationType"),
        attestation_values=body.get("attestationValues"),
        combination_logic=body.get("combinationLogic"),
    )
    message = signing_message(request, resolve_requirements(request))
    signed = Account.sign_message(encode_defunct(text=message), account.key)
    body["signature"] = "0x" + bytes(signed.signature).hex()
    return body


# -- GET /api/communities ------------------------------------------------------


class TestListCommunities:
    async def test_empty(self):
        app = await make_app()
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get("/api/communities")
        assert resp.status_code == 200
        data = resp.json()
        assert data["communities"] == []
        assert data["pagination"] == {"page": 1, "limit": 20, "total": 0, "totalPages": 0}

    async def test_filter_by_type(self):
        app = await make_app()
        await seed_community(app)
        await seed_community(
            app, "age-verified-1", attestation_type="age", attestation_value="verified"
        )
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get("/api/communities", params={"attestationType": "age"})
        data = resp.json()
        assert [c["communityId"] for c in data["communities"]] == ["age-verified-1"]
        assert data["pagination"]["total"] == 1

    async def test_invalid_type(self):
        app = await make_app()
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get("/api/communities", params={"attestationType": "passport"})
        assert resp.status_code == 400

    async def test_limit_capped(self):
        app = await make_app()
        for i in range(3):
            await seed_community(app, f"nationality-DEU-{i}")
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get("/api/communities", params={"limit": 500, "page": 0})
        pagination = resp.json()["pagination"]
        assert pagination["limit"] == 100
        assert pagination["page"] == 1

    async def test_paging(self):
        app = await make_app()
        for i in range(5):
            await seed_community(app, f"nationality-DEU-{i}")
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get("/api/communities", params={"limit": 2, "page": 3})
        data = resp.json()
        assert len(data["communities"]) == 1
        assert data["pagination"]["totalPages"] == 3

    async def test_unknown_sort_falls_back(self):
        app = await make_app()
        await seed_community(app)
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get("/api/communities", params={"sort": "random"})
        assert resp.status_code == 200
        assert len(resp.json()["communities"]) == 1


class TestUnexpectedErrors:
    async def test_unhandled_exception_returns_json_500(self):
        app = await make_app()
        app.state.db_factory = MagicMock(side_effect=RuntimeError("connection pool closed"))
        client = TestClient(app, raise_server_exceptions=False)

        resp = client.get("/api/communities")
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Internal server error"}


# -- GET /api/communities/{id} -------------------------------------------------


class TestGetCommunity:
    async def test_detail_with_membership(self):
        app = await make_app()
        await seed_community(app, members=(BOB,))
        client = TestClient(app, raise_server_exceptions=False)

        resp = client.get(
            "/api/communities/nationality-DEU-1", params={"walletAddress": BOB}
        )
        assert resp.status_code == 200
        community = resp.json()["community"]
        assert community["isMember"] is True
        assert community["memberCount"] == 1
        assert community["attestationValue"] == "DEU"

        resp = client.get(
            "/api/communities/nationality-DEU-1", params={"walletAddress": ALICE}
        )
        assert resp.json()["community"]["isMember"] is False

    async def test_without_wallet(self):
        app = await make_app()
        await seed_community(app)
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get("/api/communities/nationality-DEU-1")
        assert resp.json()["community"]["isMember"] is False

    async def test_not_found(self):
        app = await make_app()
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get("/api/communities/nope")
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Community not found"}


# -- POST /api/communities -----------------------------------------------------


class TestCreateCommunity:
    async def test_legacy_nationality(self):
        account = Account.create()
        reader = FakeAttestationReader()
        reader.grant(account.address, AttestationType.NATIONALITY, "DEU")
        app = await make_app(reader=reader)
        client = TestClient(app, raise_server_exceptions=False)

        body = _signed_body(
            account,
            attestationType="nationality",
            attestationValues=["DEU"],
            rules=["Be respectful", "No spam"],
        )
        resp = client.post("/api/communities", json=body)
        assert resp.status_code == 200, resp.text
        community = resp.json()["community"]
        assert community["communityId"].startswith("nationality-DEU-")
        assert community["attestationValues"] == ["DEU"]
        assert community["badgeRequirements"] == [
            {"type": "nationality", "values": ["DEU"]}
        ]
        assert community["rules"] == ["Be respectful", "No spam"]
        assert community["memberCount"] == 1
        assert community["isMember"] is True
        assert community["creatorAddress"] == account.address.lower()

        detail = client.get(
            f"/api/communities/{community['communityId']}",
            params={"walletAddress": account.address},
        )
        assert detail.json()["community"]["isMember"] is True

    async def test_multi_badge_and(self):
        account = Account.create()
        reader = FakeAttestationReader()
        reader.grant(account.address, AttestationType.NATIONALITY, "FRA")
        reader.grant(account.address, AttestationType.AGE)
        app = await make_app(reader=reader)
        client = TestClient(app, raise_server_exceptions=False)

        body = _signed_body(
            account,
            badgeRequirements=[
                {"type": "nationality", "values": ["FRA"]},
                {"type": "age", "value": "verified"},
            ],
            combinationLogic="all",
        )
        resp = client.post("/api/communities", json=body)
        assert resp.status_code == 200, resp.text
        community = resp.json()["community"]
        assert community["combinationLogic"] == "AND"
        assert community["attestationType"] == "nationality"

    async def test_multi_badge_needs_logic(self):
        account = Account.create()
        app = await make_app()
        client = TestClient(app, raise_server_exceptions=False)
        body = {
            "name": "Mixed",
            "description": "Needs more than one badge.",
            "timestamp": int(time.time() * 1000),
            "walletAddress": account.address,
            "signature": "0x00",
            "badgeRequirements": [
                {"type": "nationality", "values": ["FRA"]},
                {"type": "age", "value": "verified"},
            ],
        }
        resp = client.post("/api/communities", json=body)
        assert resp.status_code == 400
        assert "Combination logic" in resp.json()["detail"]

    async def test_bad_signature(self):
        account, impostor = Account.create(), Account.create()
        reader = FakeAttestationReader()
        reader.grant(account.address, AttestationType.AGE)
        app = await make_app(reader=reader)
        client = TestClient(app, raise_server_exceptions=False)

        body = _signed_body(impostor, attestationType="age")
        body["walletAddress"] = account.address
        resp = client.post("/api/communities", json=body)
        assert resp.status_code == 401
        assert resp.json() == {"detail": "Invalid signature"}
        assert reader.calls == []

    async def test_tampered_body(self):
        account = Account.create()
        reader = FakeAttestationReader()
        reader.grant(account.address, AttestationType.AGE)
        app = await make_app(reader=reader)
        client = TestClient(app, raise_server_exceptions=False)

        body = _signed_body(account, attestationType="age")
        body["name"] = "Something Else"
        assert client.post("/api/communities", json=body).status_code == 401

    async def test_expired_timestamp(self):
        account = Account.create()
        app = await make_app()
        client = TestClient(app, raise_server_exceptions=False)
        stale = int(time.time() * 1000) - 301_000
        body = _signed_body(account, attestationType="age", timestamp=stale)
        resp = client.post("/api/communities", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Request expired. Please try again."}

    async def test_creator_without_badge(self):
        account = Account.create()
        app = await make_app()
        client = TestClient(app, raise_server_exceptions=False)
        body = _signed_body(account, attestationType="age")
        resp = client.post("/api/communities", json=body)
        assert resp.status_code == 403
        assert resp.json() == {"detail": "You need to verify your age first"}

    async def test_duplicate_requirements(self):
        account = Account.create()
        reader = FakeAttestationReader()
        reader.grant(account.address, AttestationType.NATIONALITY, "DEU")
        app = await make_app(reader=reader)
        await seed_community(app)
        client = TestClient(app, raise_server_exceptions=False)

        body = _signed_body(
            account, attestationType="nationality", attestationValues=["DEU"]
        )
        resp = client.post("/api/communities", json=body)
        assert resp.status_code == 409
        assert '"Germans"' in resp.json()["detail"]

    async def test_short_name(self):
        account = Account.create()
        app = await make_app()
        client = TestClient(app, raise_server_exceptions=False)
        body = _signed_body(account, name="ab", attestationType="age")
        resp = client.post("/api/communities", json=body)
        assert resp.status_code == 400
        assert "name" in resp.json()["detail"]
