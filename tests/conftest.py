import os
import sys

import pytest

# Ensure project root is on sys.path so 'app', 'config', and 'catalog' import correctly
_TESTS_DIR = os.path.dirname(__file__)
_ROOT_DIR = os.path.abspath(os.path.join(_TESTS_DIR, os.pardir))
if _ROOT_DIR not in sys.path:
    sys.path.insert(0, _ROOT_DIR)

from tests.support import factories as test_factories
from tests.support import stubs as test_stubs


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep host credentials and secrets out of the tests."""
    monkeypatch.setenv("SPOTIFY_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("SPOTIFY_CLIENT_SECRET", "test-client-secret")
    for name in ("SPOTIFY_USER_TOKEN", "CRON_SECRET", "DATABASE_KEY"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def settings_overrides(tmp_path):
    """Per-test sqlite file plus deterministic sync settings."""
    return {
        "database_url": f"sqlite:///{(tmp_path / 'catalog.sqlite').as_posix()}",
        "spotify_client_id": "test-client-id",
        "spotify_client_secret": "test-client-secret",
        "spotify_redirect_uri": "http://localhost:5000/api/auth/callback",
        "spotify_user_token": None,
        "cron_secret": None,
        "artists": ["Duki", "Bizarrap"],
        "artist_delay_ms": 0,
        "tracks_per_artist": 0,
        "max_tracks_to_process": 50,
        "test_mode": False,
        "frontend_url": "/",
    }


@pytest.fixture
def catalog_settings(settings_overrides):
    from catalog.settings import load_settings

    return load_settings(settings_overrides)


@pytest.fixture
def app(settings_overrides):
    import app as app_module

    application = app_module.create_app(settings_overrides)
    application.config["TESTING"] = True
    yield application


@pytest.fixture
def app_context(app):
    with app.app_context():
        yield app


@pytest.fixture
def db_session(app_context):
    from catalog.database.db_manager import db

    test_factories.set_session(db.session)
    try:
        yield db.session
    finally:
        try:
            db.session.rollback()
        except Exception:
            pass
        db.session.remove()
        test_factories.reset_session()


@pytest.fixture
def factories(db_session):
    yield test_factories


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def fake_session():
    return test_stubs.FakeSession()


@pytest.fixture
def sleeps():
    """Records requested sleep durations instead of sleeping."""
    return test_stubs.SleepRecorder()
