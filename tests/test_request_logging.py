from unittest.mock import MagicMock

import pytest

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from middleware.request_logging import REQUEST_ID_HEADER, RequestLoggingMiddleware


@pytest.fixture
def logger():
    return MagicMock()


@pytest.fixture
def logged_client(logger):
    app = FastAPI()
    app.add_middleware(RequestLoggingMiddleware, logger=logger, excluded_paths={"/health"})

    @app.get("/ok")
    def ok():
        return {"ok": True}

    @app.get("/missing")
    def missing():
        raise HTTPException(status_code=404, detail="Not found")

    @app.get("/boom")
    def boom():
        raise RuntimeError("boom")

    @app.get("/health")
    def health():
        return {"ok": True}

    return TestClient(app, raise_server_exceptions=False)


def test_successful_request_is_logged_as_info(logged_client, logger):
    response = logged_client.get("/ok", headers={"User-Agent": "tests"})

    assert response.status_code == 200
    logger.info.assert_called_once()
    fields = logger.info.call_args.kwargs
    assert fields["method"] == "GET"
    assert fields["path"] == "/ok"
    assert fields["status_code"] == 200
    assert fields["client_ip"] == "testclient"
    assert fields["user_agent"] == "tests"
    assert fields["latency_ms"] >= 0
    assert fields["request_id"] == response.headers[REQUEST_ID_HEADER]


def test_client_error_is_logged_as_warning(logged_client, logger):
    logged_client.get("/missing")

    logger.warning.assert_called_once()
    assert logger.warning.call_args.kwargs["status_code"] == 404
    logger.info.assert_not_called()


def test_server_error_is_logged_as_error(logged_client, logger):
    response = logged_client.get("/boom")

    assert response.status_code == 500
    logger.error.assert_called_once()
    assert logger.error.call_args.kwargs["status_code"] == 500


def test_incoming_request_id_is_kept(logged_client, logger):
    response = logged_client.get("/ok", headers={REQUEST_ID_HEADER: "req-123"})

    assert response.headers[REQUEST_ID_HEADER] == "req-123"
    assert logger.info.call_args.kwargs["request_id"] == "req-123"


def test_excluded_paths_are_not_logged(logged_client, logger):
    logged_client.get("/health")

    logger.info.assert_not_called()


def test_application_requests_carry_a_request_id(client, signed_client):
    assert signed_client.get("/users/me").headers[REQUEST_ID_HEADER]

    # Rejected by the security checks, still logged and tagged
    assert client.get("/api/v1/users/me").headers[REQUEST_ID_HEADER]
