# File: tests/test_errors.py

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from manga_api.core.errors import GENERIC_ERROR_MESSAGE, InternalError
from manga_api.main import create_application


def _app_with_failing_routes(settings, engine, metrics):
    app = create_application(settings, engine=engine, metrics=metrics)

    @app.get("/boom")
    def boom():
        raise RuntimeError("kaboom")

    @app.get("/db-boom")
    def db_boom():
        raise OperationalError("SELECT 1", {}, Exception("database went away"))

    return app


@pytest.fixture
def production_client(settings, engine, metrics):
    production = settings.model_copy(update={"environment": "production"})
    return TestClient(_app_with_failing_routes(production, engine, metrics))


@pytest.fixture
def dev_client(settings, engine, metrics):
    development = settings.model_copy(update={"environment": "development"})
    return TestClient(_app_with_failing_routes(development, engine, metrics))


def test_unhandled_error_is_generic_in_production(production_client, metrics):
    resp = production_client.get("/boom")
    assert resp.status_code == 500
    assert resp.json() == {"error": GENERIC_ERROR_MESSAGE}

    errors = metrics.recent_errors()
    assert len(errors) == 1
    assert errors[0]["endpoint"] == "GET /boom"
    assert errors[0]["message"] == "kaboom"


def test_database_error_is_generic_in_production(production_client, metrics):
    resp = production_client.get("/db-boom")
    assert resp.status_code == 500
    assert resp.json() == {"error": GENERIC_ERROR_MESSAGE}
    assert "database went away" in metrics.recent_errors()[0]["message"]


def test_raw_messages_outside_production(dev_client):
    assert dev_client.get("/boom").json() == {"error": "kaboom"}

    resp = dev_client.get("/db-boom")
    assert resp.status_code == 500
    assert "database went away" in resp.json()["error"]


def test_unhandled_error_response_has_security_headers(production_client):
    resp = production_client.get("/boom")
    assert resp.status_code == 500
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_internal_error_body():
    error = InternalError()
    assert error.status_code == 500
    assert error.to_body() == {"error": GENERIC_ERROR_MESSAGE}
