"""HTTP-level tests for the event intake and build status routes."""

import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient

from buildhook.config import Settings
from buildhook.main import create_app

API = "/headless-static/v1"
AUTH = {"Authorization": "Bearer op-token"}


@pytest.fixture
def settings(database_url):
    return Settings(
        _env_file=None,
        database_url=database_url,
        site_url="https://cms.example.com",
        api_token="op-token",
    )


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class TestEvents:
    def test_published_save_accepted(self, client):
        resp = client.post(
            "/events",
            json={"hook": "save_post", "entity_id": 1, "resulting_status": "publish"},
        )
        assert resp.status_code == 202
        assert resp.json() == {"accepted": True}

    def test_autosave_ignored(self, client):
        resp = client.post(
            "/events",
            json={"hook": "save_post", "entity_id": 1, "resulting_status": "publish",
                  "is_autosave": True},
        )
        assert resp.status_code == 202
        assert resp.json() == {"accepted": False}

    def test_unknown_hook_rejected(self, client):
        resp = client.post("/events", json={"hook": "user_register"})
        assert resp.status_code == 422

    def test_signature_required_when_configured(self, settings):
        signed = settings.model_copy(update={"cms_signing_secret": "cms-secret"})
        body = json.dumps({"hook": "wp_update_nav_menu", "entity_id": 3}).encode()
        signature = hmac.new(b"cms-secret", body, hashlib.sha256).hexdigest()

        with TestClient(create_app(signed)) as client:
            missing = client.post("/events", content=body)
            wrong = client.post("/events", content=body, headers={"X-CMS-Signature": "00"})
            good = client.post("/events", content=body, headers={"X-CMS-Signature": signature})

        assert missing.status_code == 401
        assert wrong.status_code == 401
        assert good.status_code == 202


class TestStatusRoutes:
    def test_build_status(self, client):
        body = client.get(f"{API}/build-status").json()
        assert set(body) >= {
            "last_build", "build_version", "content_hash", "posts_count", "pages_count",
        }
        assert body["build_version"] == "0"

    def test_content_hash(self, client):
        body = client.get(f"{API}/content-hash").json()
        assert len(body["hash"]) == 64
        assert body["timestamp"]


class TestOperatorRoutes:
    def test_trigger_requires_token(self, client):
        assert client.post(f"{API}/trigger-build").status_code == 401
        bad = client.post(f"{API}/trigger-build", headers={"Authorization": "Bearer nope"})
        assert bad.status_code == 401

    def test_trigger_without_destination(self, client):
        resp = client.post(f"{API}/trigger-build", headers=AUTH)
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "message": "No webhook URL configured"}

    def test_operator_routes_closed_without_token(self, settings):
        closed = settings.model_copy(update={"api_token": ""})
        with TestClient(create_app(closed)) as client:
            resp = client.post(f"{API}/trigger-build", headers=AUTH)
        assert resp.status_code == 403

    def test_settings_roundtrip_hides_secrets(self, client):
        resp = client.put(
            f"{API}/settings",
            headers=AUTH,
            json={"url": "https://hooks.example.com/build", "secret": "s3cret"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["secret_set"] is True
        assert body["warnings"] == []
        assert "s3cret" not in resp.text

        current = client.get(f"{API}/settings", headers=AUTH).json()
        assert current["url"] == "https://hooks.example.com/build"
        assert current["secret_set"] is True

    def test_settings_partial_update_keeps_secret(self, client):
        client.put(
            f"{API}/settings",
            headers=AUTH,
            json={"url": "https://hooks.example.com/build", "secret": "s3cret"},
        )
        body = client.put(
            f"{API}/settings", headers=AUTH, json={"ci_repo": "acme/site"}
        ).json()
        assert body["secret_set"] is True
        assert body["ci_repo"] == "acme/site"
        assert "CI workflow dispatch needs both a repository and a token" in body["warnings"]

    def test_unsigned_url_warns(self, client):
        body = client.put(
            f"{API}/settings", headers=AUTH, json={"url": "https://hooks.example.com/build"}
        ).json()
        assert body["warnings"] == ["Webhook secret not set: deliveries will be unsigned"]

    def test_secret_without_url_rejected(self, client):
        resp = client.put(f"{API}/settings", headers=AUTH, json={"secret": "s3cret"})
        assert resp.status_code == 422

    def test_settings_without_url_shows_notice(self, client):
        body = client.get(f"{API}/settings", headers=AUTH).json()
        assert "Webhook URL not configured" in body["warnings"]


HOOK_URL = "https://hooks.example.com/build/tok3n"


def _publish(post_id: int, title: str, **kwargs) -> dict:
    return {
        "hook": "save_post",
        "entity_id": post_id,
        "previous_status": "draft",
        "resulting_status": "publish",
        "content_type": "post",
        "title": title,
        "body": f"<p>{title}</p>",
        "modified_at": f"2024-07-0{post_id}T10:00:00Z",
        **kwargs,
    }


class TestEventPipeline:
    @pytest.fixture
    def app_client(self, settings, transport):
        app = create_app(settings, http_client=transport.client())
        with TestClient(app) as test_client:
            test_client.put(f"{API}/settings", headers=AUTH, json={"url": HOOK_URL})
            yield test_client

    @staticmethod
    def _post(client, body: dict) -> None:
        assert client.post("/events", json=body).status_code == 202
        client.portal.call(client.app.state.observer.drain)

    @staticmethod
    def _events(transport) -> list[str]:
        return [json.loads(request.content)["event"] for request in transport.requests]

    def test_each_publish_triggers_a_build(self, app_client, transport):
        for post_id in (1, 2, 3):
            self._post(app_client, _publish(post_id, f"Post {post_id}"))

        assert len(transport.requests) == 3
        versions = [json.loads(r.content)["build_version"] for r in transport.requests]
        assert versions == ["1", "2", "3"]

        status = app_client.get(f"{API}/build-status").json()
        assert status["posts_count"] == 3
        assert status["content_hash"] == app_client.get(f"{API}/content-hash").json()["hash"]

    def test_resave_without_change_is_skipped(self, app_client, transport):
        self._post(app_client, _publish(1, "Hello"))
        self._post(app_client, _publish(1, "Hello", previous_status="publish"))
        assert len(transport.requests) == 1

    def test_edit_unpublish_and_delete(self, app_client, transport):
        self._post(app_client, _publish(1, "Hello"))
        self._post(app_client, _publish(1, "Hello again", previous_status="publish"))
        self._post(
            app_client,
            {"hook": "transition_post_status", "entity_id": 1,
             "previous_status": "publish", "resulting_status": "draft"},
        )
        assert app_client.get(f"{API}/build-status").json()["posts_count"] == 0

        self._post(app_client, _publish(2, "Second"))
        self._post(
            app_client,
            {"hook": "delete_post", "entity_id": 2, "previous_status": "publish"},
        )

        assert self._events(transport) == [
            "save_post", "save_post", "transition_post_status", "save_post", "delete_post",
        ]
        assert app_client.get(f"{API}/content-hash").json()["publishable_count"] == 0

    def test_menu_update_triggers_a_build(self, app_client, transport):
        self._post(app_client, _publish(1, "Hello"))
        self._post(
            app_client,
            {"hook": "wp_update_nav_menu", "entity_id": 7, "title": "Primary",
             "body": "Home|About"},
        )
        self._post(
            app_client,
            {"hook": "wp_update_nav_menu", "entity_id": 7, "title": "Primary",
             "body": "Home|About|Contact"},
        )

        assert self._events(transport) == [
            "save_post", "wp_update_nav_menu", "wp_update_nav_menu",
        ]
        assert json.loads(transport.requests[1].content)["post_id"] == "7"

    def test_term_lifecycle_triggers_builds(self, app_client, transport):
        self._post(
            app_client,
            {"hook": "created_term", "entity_id": 3, "content_type": "category",
             "title": "News"},
        )
        self._post(
            app_client,
            {"hook": "edited_term", "entity_id": 3, "content_type": "category",
             "title": "Latest news"},
        )
        self._post(app_client, {"hook": "delete_term", "entity_id": 3})

        assert self._events(transport) == ["created_term", "edited_term", "delete_term"]

    def test_draft_and_autosave_do_not_build(self, app_client, transport):
        self._post(
            app_client,
            {"hook": "save_post", "entity_id": 1, "previous_status": "draft",
             "resulting_status": "draft", "title": "Work in progress"},
        )
        self._post(app_client, _publish(1, "Hello", is_autosave=True))

        assert transport.requests == []
        assert app_client.get(f"{API}/build-status").json()["posts_count"] == 0
