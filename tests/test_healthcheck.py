import importlib.util
import os

import pytest
import requests

from tests.support.stubs import FakeResponse

_SCRIPT = os.path.join(os.path.dirname(__file__), os.pardir, "scripts", "healthcheck.py")


@pytest.fixture(scope="module")
def healthcheck():
    spec = importlib.util.spec_from_file_location("catalog_healthcheck", _SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class _Session:
    def __init__(self, item):
        self.item = item
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        if isinstance(self.item, BaseException):
            raise self.item
        return self.item


@pytest.mark.unit
def test_target_url_defaults_to_readiness(healthcheck):
    assert healthcheck.target_url({}) == "http://127.0.0.1:5000/readyz"
    assert healthcheck.target_url({"PORT": "8080", "HEALTHCHECK_PATH": "/health"}) == "http://127.0.0.1:8080/health"
    assert healthcheck.target_url({"HEALTHCHECK_URL": "http://catalog/readyz"}) == "http://catalog/readyz"


@pytest.mark.unit
@pytest.mark.parametrize("body", [{"status": "ok"}, {"status": "ready", "checks": {"database": "ok"}}])
def test_healthy_bodies_pass(healthcheck, body):
    healthy, reason = healthcheck.check("http://x/readyz", session=_Session(FakeResponse(200, body)))
    assert healthy is True
    assert reason == body["status"]


@pytest.mark.unit
def test_unavailable_database_fails(healthcheck):
    resp = FakeResponse(503, {"status": "unavailable", "checks": {"database": "error: locked"}})
    healthy, reason = healthcheck.check("http://x/readyz", session=_Session(resp))
    assert healthy is False
    assert "503" in reason
    assert "locked" in reason


@pytest.mark.unit
def test_unexpected_body_fails(healthcheck):
    healthy, _ = healthcheck.check("http://x/health", session=_Session(FakeResponse(200, {"status": "starting"})))
    assert healthy is False
    healthy, reason = healthcheck.check("http://x/health", session=_Session(FakeResponse(200, None)))
    assert healthy is False
    assert "JSON" in reason


@pytest.mark.unit
def test_unreachable_server_fails(healthcheck):
    healthy, reason = healthcheck.check("http://x/health", session=_Session(requests.ConnectionError("refused")))
    assert healthy is False
    assert reason.startswith("unreachable")


@pytest.mark.unit
def test_live_app_passes(healthcheck, client):
    class _AppSession:
        def get(self, url, timeout=None):
            r = client.get(url)
            return FakeResponse(r.status_code, r.get_json())

    assert healthcheck.check("/health", session=_AppSession()) == (True, "ok")
    assert healthcheck.check("/readyz", session=_AppSession()) == (True, "ready")
