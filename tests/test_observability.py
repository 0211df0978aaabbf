import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from storjstore.common.logging import STORAGE_LOGGER
from storjstore.infra.observability.instrumentation import instrument
from storjstore.infra.observability.metrics import metrics_app
from storjstore.infra.observability.middleware import MetricsMiddleware


def build_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(MetricsMiddleware)

    @app.get("/api/v1/objects/{key:path}")
    def get_object(key: str):
        return {"key": key}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.mount("/metrics", metrics_app)
    return app


def test_metrics_route_template_label():
    app = build_app()
    client = TestClient(app)
    # trigger a request on a templated route
    resp = client.get("/api/v1/objects/docs/123.txt")
    assert resp.status_code == 200

    # fetch metrics and assert low-cardinality route label is used
    m = client.get("/metrics")
    assert m.status_code == 200
    metrics_text = m.text
    assert "http_requests_total" in metrics_text
    assert 'route="/api/v1/objects/{key:path}"' in metrics_text
    assert "docs/123.txt" not in metrics_text


def test_latency_metric_present():
    app = build_app()
    client = TestClient(app)
    client.get("/api/v1/objects/456")
    m = client.get("/metrics")
    assert m.status_code == 200
    metrics_text = m.text
    assert "http_request_duration_seconds" in metrics_text
    assert 'route="/api/v1/objects/{key:path}"' in metrics_text


def test_request_id_propagation():
    app = build_app()
    client = TestClient(app)

    # auto-generate when missing
    r1 = client.get("/health")
    rid1 = r1.headers.get("X-Request-Id")
    assert rid1 is not None and len(rid1) > 0

    # echo when provided
    rid = "req-abc-123"
    r2 = client.get("/health", headers={"X-Request-Id": rid})
    assert r2.headers.get("X-Request-Id") == rid


def test_instrument_logs_successful_operation(caplog):
    with caplog.at_level(logging.INFO, logger=STORAGE_LOGGER):
        with instrument("exist", key="a") as payload:
            payload["exist"] = True

    records = [r for r in caplog.records if r.name == STORAGE_LOGGER]
    assert len(records) == 1
    assert records[0].levelno == logging.INFO
    assert records[0].extra["operation"] == "exist"
    assert records[0].extra["status"] == "ok"
    assert records[0].extra["key"] == "a"
    assert records[0].extra["exist"] is True
    assert records[0].extra["duration_ms"] >= 0


def test_instrument_logs_and_reraises_failures(caplog):
    with caplog.at_level(logging.INFO, logger=STORAGE_LOGGER):
        with pytest.raises(RuntimeError):
            with instrument("download", key="a"):
                raise RuntimeError("boom")

    records = [r for r in caplog.records if r.name == STORAGE_LOGGER]
    assert records[-1].levelno == logging.WARNING
    assert records[-1].extra["status"] == "error"
    assert "boom" in records[-1].extra["exception"]


def test_storage_metrics_exported():
    with instrument("delete", key="a"):
        pass

    client = TestClient(build_app())
    metrics_text = client.get("/metrics").text
    assert 'storage_operations_total{operation="delete",status="ok"}' in metrics_text
    assert "storage_operation_duration_seconds" in metrics_text


def test_instrument_marks_closed_generator_as_aborted(caplog):
    def chunks():
        with instrument("streaming_download", key="a"):
            yield b"x"
            yield b"y"

    gen = chunks()
    with caplog.at_level(logging.INFO, logger=STORAGE_LOGGER):
        assert next(gen) == b"x"
        gen.close()

    records = [r for r in caplog.records if r.name == STORAGE_LOGGER]
    assert records[-1].extra["status"] == "aborted"
    assert "exception" not in records[-1].extra

    client = TestClient(build_app())
    metrics_text = client.get("/metrics").text
    assert (
        'storage_operations_total{operation="streaming_download",status="aborted"}'
        in metrics_text
    )
