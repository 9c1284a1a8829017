"""End-to-end tests for the v1 HTTP API."""

from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from launchspace.services.submission_service import SubmissionService

from conftest import auth_headers, submission_payload

ADMIN = auth_headers("admin-1")
CRON = {"Authorization": "Bearer test-cron-secret"}


async def _launch(client: AsyncClient, user_id: str = "user-a", approve: bool = True, **overrides) -> dict:
    response = await client.post(
        "/api/v1/apps", json=submission_payload(**overrides), headers=auth_headers(user_id)
    )
    assert response.status_code == 201, response.text
    app = response.json()["data"]
    if approve:
        response = await client.patch(
            f"/api/v1/admin/apps/{app['id']}/status", json={"status": "approved"}, headers=ADMIN
        )
        assert response.status_code == 200, response.text
        app = response.json()["data"]
    return app


# ============================================================================
# TESTS: HEALTH
# ============================================================================

class TestHealth:

    async def test_health_without_cache(self, client: AsyncClient):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"
        assert body["cache"] == "disabled"


# ============================================================================
# TESTS: APPS
# ============================================================================

class TestAppsApi:
    """Tests for /apps endpoints."""

    async def test_create_app(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/apps", json=submission_payload(name="My Cool App!"), headers=auth_headers("user-a")
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["slug"] == "my-cool-app"
        assert data["status"] == "pending"
        assert data["ranking_score"] == 0.0

    async def test_create_requires_identity(self, client: AsyncClient):
        response = await client.post("/api/v1/apps", json=submission_payload())

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_create_rejects_bad_token(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/apps", json=submission_payload(), headers={"Authorization": "Bearer nope"}
        )

        assert response.status_code == 401

    async def test_create_validation_error_has_field_detail(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/apps",
            json=submission_payload(website_url="ftp//broken"),
            headers=auth_headers("user-a"),
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert any(e["field"] == "website_url" for e in error["errors"])

    async def test_explicit_duplicate_slug(self, client: AsyncClient):
        await _launch(client, approve=False, slug="taken")

        response = await client.post(
            "/api/v1/apps", json=submission_payload(slug="taken"), headers=auth_headers("user-b")
        )

        assert response.status_code == 409

    async def test_listing_shows_only_public_apps(self, client: AsyncClient):
        await _launch(client, name="Visible")
        await _launch(client, name="Waiting", approve=False)

        response = await client.get("/api/v1/apps")

        assert response.status_code == 200
        body = response.json()
        assert [a["name"] for a in body["data"]] == ["Visible"]
        assert body["meta"]["total"] == 1

    async def test_get_app_counts_view(self, client: AsyncClient):
        await _launch(client, name="Foo")

        response = await client.get("/api/v1/apps/foo", headers=auth_headers("user-b"))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["views"] == 1
        assert data["user_vote"] is None
        assert data["full_description"] == submission_payload()["full_description"]

    async def test_get_unknown_app(self, client: AsyncClient):
        response = await client.get("/api/v1/apps/does-not-exist")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    async def test_owner_update_and_protected_fields(self, client: AsyncClient):
        app = await _launch(client, approve=False)

        ok = await client.put(
            f"/api/v1/apps/{app['id']}", json={"pricing": "Paid"}, headers=auth_headers("user-a")
        )
        protected = await client.put(
            f"/api/v1/apps/{app['id']}", json={"upvotes": 999}, headers=auth_headers("user-a")
        )
        stranger = await client.put(
            f"/api/v1/apps/{app['id']}", json={"pricing": "Free"}, headers=auth_headers("user-b")
        )

        assert ok.status_code == 200
        assert ok.json()["data"]["pricing"] == "Paid"
        assert protected.status_code == 403
        assert stranger.status_code == 403

    async def test_delete_pending_but_not_approved(self, client: AsyncClient):
        pending = await _launch(client, name="Draft", approve=False)
        approved = await _launch(client, name="Shipped")

        ok = await client.delete(f"/api/v1/apps/{pending['id']}", headers=auth_headers("user-a"))
        refused = await client.delete(f"/api/v1/apps/{approved['id']}", headers=auth_headers("user-a"))

        assert ok.status_code == 200
        assert refused.status_code == 400
        assert refused.json()["error"]["code"] == "ILLEGAL_STATE"

    async def test_click_action(self, client: AsyncClient):
        await _launch(client, name="Foo")

        response = await client.post("/api/v1/apps/foo?action=click")
        detail = await client.get("/api/v1/apps/foo", headers=auth_headers("user-b"))

        assert response.status_code == 200
        assert detail.json()["data"]["clicks"] == 1
        assert detail.json()["data"]["views"] == 1

    async def test_storage_failure_is_generic_500(self, client: AsyncClient, monkeypatch):
        async def _unreachable(self, *args, **kwargs):
            raise OperationalError("SELECT * FROM submissions", {}, Exception("password authentication failed"))

        monkeypatch.setattr(SubmissionService, "list_submissions", _unreachable)

        response = await client.get("/api/v1/apps")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "STORAGE_ERROR"
        assert error["message"] == "A storage error occurred"
        assert "password" not in response.text
        assert "submissions" not in response.text


# ============================================================================
# TESTS: VOTING
# ============================================================================

class TestVotingApi:
    """Tests for POST /apps/{slug}?action=vote|unvote."""

    async def test_vote_change_and_second_voter(self, client: AsyncClient):
        await _launch(client, name="Foo")

        first = await client.post(
            "/api/v1/apps/foo?action=vote", json={"voteType": "upvote"}, headers=auth_headers("user-b")
        )
        changed = await client.post(
            "/api/v1/apps/foo?action=vote", json={"voteType": "downvote"}, headers=auth_headers("user-b")
        )
        second = await client.post(
            "/api/v1/apps/foo?action=vote", json={"voteType": "upvote"}, headers=auth_headers("user-c")
        )

        assert first.status_code == 200
        assert first.json()["data"]["ranking_score"] == 1.0
        assert changed.json()["data"]["outcome"] == "changed"
        assert changed.json()["data"]["ranking_score"] == -0.5
        data = second.json()["data"]
        assert (data["upvotes"], data["downvotes"], data["ranking_score"]) == (1, 1, 0.5)

    async def test_duplicate_vote_is_ok(self, client: AsyncClient):
        await _launch(client, name="Foo")
        for _ in range(2):
            response = await client.post(
                "/api/v1/apps/foo?action=vote", json={"voteType": "upvote"}, headers=auth_headers("user-b")
            )

        assert response.status_code == 200
        assert response.json()["data"]["outcome"] == "duplicate"
        assert response.json()["data"]["upvotes"] == 1

    async def test_unvote(self, client: AsyncClient):
        await _launch(client, name="Foo")
        await client.post(
            "/api/v1/apps/foo?action=vote", json={"voteType": "upvote"}, headers=auth_headers("user-b")
        )

        response = await client.post("/api/v1/apps/foo?action=unvote", headers=auth_headers("user-b"))

        assert response.status_code == 200
        assert response.json()["data"]["outcome"] == "retracted"
        assert response.json()["data"]["upvotes"] == 0

    async def test_invalid_vote_type(self, client: AsyncClient):
        await _launch(client, name="Foo")

        response = await client.post(
            "/api/v1/apps/foo?action=vote", json={"voteType": "sideways"}, headers=auth_headers("user-b")
        )

        assert response.status_code == 400

    async def test_vote_requires_identity(self, client: AsyncClient):
        await _launch(client, name="Foo")

        response = await client.post("/api/v1/apps/foo?action=vote", json={"voteType": "upvote"})

        assert response.status_code == 401

    async def test_vote_unknown_app(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/apps/missing?action=vote", json={"voteType": "upvote"}, headers=auth_headers("user-b")
        )

        assert response.status_code == 404

    async def test_vote_identity_checked_before_lookup(self, client: AsyncClient):
        response = await client.post("/api/v1/apps/missing?action=vote", json={"voteType": "upvote"})
        unvote = await client.post("/api/v1/apps/missing?action=unvote")

        assert response.status_code == 401
        assert unvote.status_code == 401

    async def test_vote_on_pending_app(self, client: AsyncClient):
        await _launch(client, name="Foo", approve=False)

        response = await client.post(
            "/api/v1/apps/foo?action=vote", json={"voteType": "upvote"}, headers=auth_headers("user-b")
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "ILLEGAL_STATE"

    async def test_unknown_action(self, client: AsyncClient):
        await _launch(client, name="Foo")

        response = await client.post("/api/v1/apps/foo?action=boost", headers=auth_headers("user-b"))

        assert response.status_code == 400


# ============================================================================
# TESTS: COMPETITIONS, ADMIN, CRON
# ============================================================================

class TestCompetitionApi:
    """Tests for rankings, moderation and the scheduled lifecycle."""

    async def test_week_ranking(self, client: AsyncClient):
        await _launch(client, name="Alpha", launch_week="2024-W10")
        await _launch(client, name="Bravo", launch_week="2024-W10")
        await client.post(
            "/api/v1/apps/bravo?action=vote", json={"voteType": "upvote"}, headers=auth_headers("user-b")
        )

        response = await client.get("/api/v1/competitions/2024-W10/ranking")

        assert response.status_code == 200
        apps = response.json()["data"]["apps"]
        assert [(a["rank"], a["name"]) for a in apps] == [(1, "Bravo"), (2, "Alpha")]

    async def test_bad_week_id(self, client: AsyncClient):
        response = await client.get("/api/v1/competitions/week-ten/ranking")

        assert response.status_code == 400

    async def test_winners_need_admin(self, client: AsyncClient):
        response = await client.post("/api/v1/competitions/2024-W10/winners", headers=auth_headers("user-a"))

        assert response.status_code == 403

    async def test_admin_selects_winners(self, client: AsyncClient):
        await _launch(client, name="Alpha", launch_week="2024-W10")

        response = await client.post("/api/v1/competitions/2024-W10/winners", headers=ADMIN)

        assert response.status_code == 200
        winners = response.json()["data"]["winners"]
        assert [w["weekly_position"] for w in winners] == [1]

    async def test_admin_illegal_transition(self, client: AsyncClient):
        app = await _launch(client, approve=False)

        response = await client.patch(
            f"/api/v1/admin/apps/{app['id']}/status", json={"status": "archived"}, headers=ADMIN
        )

        assert response.status_code == 400

    async def test_cron_requires_secret(self, client: AsyncClient):
        response = await client.get("/api/v1/cron/competitions")

        assert response.status_code == 401

    async def test_cron_creates_upcoming_weeks(self, client: AsyncClient):
        response = await client.get("/api/v1/cron/competitions", headers=CRON)

        assert response.status_code == 200
        assert len(response.json()["data"]["created"]) == 8

        current = await client.get("/api/v1/competitions/current")
        available = await client.get("/api/v1/competitions/available?plan=premium")
        assert current.status_code == 200
        assert current.json()["data"]["status"] == "upcoming"
        assert current.json()["data"]["time_left"]["total_ms"] > 0
        assert len(available.json()["data"]) == 8

    async def test_dashboard_and_stats(self, client: AsyncClient):
        await _launch(client, name="Mine")
        await _launch(client, name="Draft", approve=False)

        dashboard = await client.get("/api/v1/users/me/dashboard", headers=auth_headers("user-a"))
        stats = await client.get("/api/v1/stats")

        assert dashboard.status_code == 200
        assert dashboard.json()["data"]["stats"]["total_apps"] == 2
        assert dashboard.json()["data"]["stats"]["pending_apps"] == 1
        assert stats.json()["data"]["total_apps"] == 1
        assert stats.json()["data"]["total_users"] == 1
