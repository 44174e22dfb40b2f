import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from habitual.core.context import get_request_id, get_user_id, request_id_ctx_var, user_id_ctx_var
from habitual.core.logging import RequestContextFilter
from habitual.core.middleware import RequestIDMiddleware


def _get_client() -> TestClient:
    from habitual.main import app

    return TestClient(app)


def _context_client() -> TestClient:
    """A bare app exposing what the middleware bound for the request."""
    app = FastAPI()
    app.add_middleware(RequestIDMiddleware)

    @app.get("/whoami")
    def whoami() -> dict:
        record = logging.LogRecord("habitual.test", logging.INFO, __file__, 0, "whoami", None, None)
        RequestContextFilter().filter(record)
        return {
            "request_id": get_request_id(),
            "user_id": get_user_id(),
            "log_request_id": record.request_id,
            "log_user_id": record.user_id,
        }

    return TestClient(app)


def test_health_endpoint_returns_ok() -> None:
    response = _get_client().get("/health", headers={"X-Request-Id": "health-1"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-Id"] == "health-1"


def test_user_header_is_bound_for_the_request_and_its_logs() -> None:
    response = _context_client().get("/whoami", headers={"X-Request-Id": "req-42", "X-User-Id": "user-7"})

    assert response.json() == {
        "request_id": "req-42",
        "user_id": "user-7",
        "log_request_id": "req-42",
        "log_user_id": "user-7",
    }


def test_missing_headers_fall_back_to_generated_id_and_dash() -> None:
    response = _context_client().get("/whoami")
    body = response.json()

    assert body["user_id"] is None
    assert body["log_user_id"] == "-"
    assert body["request_id"]
    assert response.headers["X-Request-Id"] == body["request_id"]


def test_context_is_reset_after_the_request() -> None:
    _context_client().get("/whoami", headers={"X-Request-Id": "req-1", "X-User-Id": "user-1"})

    assert request_id_ctx_var.get() is None
    assert user_id_ctx_var.get() is None


def test_log_filter_outside_a_request_uses_placeholders() -> None:
    record = logging.LogRecord("habitual.test", logging.INFO, __file__, 0, "idle", None, None)

    assert RequestContextFilter().filter(record) is True
    assert record.request_id == "-"
    assert record.user_id == "-"
