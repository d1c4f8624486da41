"""Integration tests for the FastAPI boundary: require_captcha, metadata and health."""

from contextlib import asynccontextmanager

import httpx
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from app import create_app
from config import AppSettings
from dependencies import require_captcha
from errors import CaptchaProviderError, register_error_handlers
from infrastructure.http_client import HttpClient
from routes.captcha_routes import router as captcha_router
from routes.health_routes import router as health_router
from schemas.dto.responses.captcha import VerificationResult
from services.captcha_service import CaptchaService
from services.config_resolver import ConfigResolver
from services.policy_store import PolicyCache


def _build_test_app(provider_body: dict) -> tuple[FastAPI, list]:
    """
    Build a minimal FastAPI app whose siteverify calls hit a MockTransport.
    No real network connections are made.
    """
    seen: list = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=provider_body)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolver = ConfigResolver()
        policy_cache = PolicyCache(resolver)
        http = HttpClient(transport=httpx.MockTransport(handler))
        app.state.settings = AppSettings()
        app.state.config_resolver = resolver
        app.state.policy_cache = policy_cache
        app.state.captcha_service = await CaptchaService.create(policy_cache, resolver, http)
        yield
        await http.aclose()

    app = FastAPI(lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(captcha_router)

    @app.post("/api/login")
    async def login(result: VerificationResult = Depends(require_captcha("login"))):
        return {"ok": True, "status": result.status}

    @app.post("/api/search", dependencies=[Depends(require_captcha("search", failure_status=403))])
    async def search():
        return {"ok": True}

    return app, seen


PASSING = {"success": True, "action": "login", "score": 0.9}


class TestRequireCaptcha:
    def test_missing_token(self, policy_path):
        app, seen = _build_test_app(PASSING)
        with TestClient(app) as client:
            resp = client.post("/api/login")
        assert resp.status_code == 400
        assert resp.json() == {
            "success": False,
            "status": "token_missing",
            "message": "missing captcha token",
        }
        assert seen == []

    def test_header_token(self, policy_path):
        app, seen = _build_test_app(PASSING)
        with TestClient(app) as client:
            resp = client.post("/api/login", headers={"X-Captcha-Token": "hdr-tok"})
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "status": "verified"}
        assert "response=hdr-tok" in seen[0].content.decode()

    @pytest.mark.parametrize(
        "field", ["cf-turnstile-response", "g-recaptcha-response", "token"]
    )
    def test_form_token(self, policy_path, field):
        app, seen = _build_test_app(PASSING)
        with TestClient(app) as client:
            resp = client.post("/api/login", data={field: "form-tok"})
        assert resp.status_code == 200
        assert "response=form-tok" in seen[0].content.decode()

    @pytest.mark.parametrize(
        "content_type",
        ["multipart/form-data; boundary=x", "multipart/form-data"],
    )
    def test_malformed_multipart_is_token_missing(self, policy_path, content_type):
        app, seen = _build_test_app(PASSING)
        with TestClient(app) as client:
            resp = client.post(
                "/api/login",
                content=b"--y\r\ngarbage without headers",
                headers={"Content-Type": content_type},
            )
        assert resp.status_code == 400
        assert resp.json()["status"] == "token_missing"
        assert seen == []

    def test_json_token(self, policy_path):
        app, seen = _build_test_app(PASSING)
        with TestClient(app) as client:
            resp = client.post("/api/login", json={"token": "json-tok", "user": "x"})
        assert resp.status_code == 200
        assert "response=json-tok" in seen[0].content.decode()

    def test_forwarded_ip_is_sent(self, policy_path):
        app, seen = _build_test_app(PASSING)
        with TestClient(app) as client:
            client.post(
                "/api/login",
                headers={"X-Captcha-Token": "t", "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
            )
        assert "remoteip=203.0.113.7" in seen[0].content.decode()

    def test_rejection_body_is_the_result(self, policy_path):
        app, _ = _build_test_app({"success": True, "action": "search", "score": 0.9})
        with TestClient(app) as client:
            resp = client.post("/api/login", headers={"X-Captcha-Token": "t"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["status"] == "action_mismatch"

    def test_custom_failure_status(self, policy_path):
        app, _ = _build_test_app({"success": False})
        with TestClient(app) as client:
            resp = client.post("/api/search", headers={"X-Captcha-Token": "t"})
        assert resp.status_code == 403
        assert resp.json()["status"] == "success_failed"

    def test_config_error_surfaces_as_status(self, policy_path, monkeypatch):
        app, seen = _build_test_app(PASSING)
        with TestClient(app) as client:
            monkeypatch.delenv("SECRET")
            resp = client.post("/api/login", headers={"X-Captcha-Token": "t"})
        assert resp.status_code == 400
        assert resp.json()["status"] == "config_error"
        assert seen == []


class TestMetadataRoute:
    def test_returns_widget_settings(self, policy_path):
        app, seen = _build_test_app(PASSING)
        with TestClient(app) as client:
            resp = client.get("/captcha/login")
        assert resp.status_code == 200
        assert resp.json() == {
            "action": "login",
            "site_key": "sk",
            "theme": "",
            "appearance": "",
        }
        assert seen == []

    def test_policy_failure_is_rendered(self, policy_path):
        app, _ = _build_test_app(PASSING)
        with TestClient(app) as client:
            policy_path.unlink()
            resp = client.get("/captcha/login")
        assert resp.status_code == 500
        assert resp.json()["code"] == "policy_file_unreadable"


class TestHealth:
    def test_healthy(self, policy_path):
        app, _ = _build_test_app(PASSING)
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {
            "status": "healthy",
            "checks": {"config_source": "env", "policy": "ok", "provider": "google"},
        }

    def test_unhealthy_when_policy_breaks(self, policy_path, policy_writer):
        app, _ = _build_test_app(PASSING)
        with TestClient(app) as client:
            policy_writer(policy_path, "{", mtime_ns=7_000_000_000)
            resp = client.get("/health")
        assert resp.status_code == 503
        assert resp.json()["checks"]["policy"] == "error"


class TestCreateApp:
    def test_boots_and_serves_metadata(self, policy_path):
        app = create_app(AppSettings())
        with TestClient(app) as client:
            assert client.get("/health").json()["status"] == "healthy"
            assert client.get("/captcha/anything").json()["site_key"] == "sk"
            assert app.state.captcha_service.provider == "google"

    def test_unknown_provider_aborts_startup(self, policy_path, policy_writer, login_policy):
        login_policy["provider"] = "hcaptcha"
        policy_writer(policy_path, login_policy)
        app = create_app(AppSettings())
        with pytest.raises(CaptchaProviderError):
            with TestClient(app):
                pass
