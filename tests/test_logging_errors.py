"""
test_logging_errors.py — Cycle-tagged log records and the error envelope.

Run with:
    pytest tests/test_logging_errors.py -v
"""

from __future__ import annotations

import json
import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.app.core.errors import (
    NoContactsError,
    NotFoundError,
    TransportFailureError,
    register_error_handlers,
)
from backend.app.core.logging_config import (
    JSONFormatter,
    PrettyFormatter,
    clear_cycle_context,
    new_cycle_id,
    set_cycle_context,
)


def _record(msg="hello", **extra):
    record = logging.LogRecord("safety.test", logging.INFO, __file__, 1, msg, None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


class TestCycleContext:

    def teardown_method(self):
        clear_cycle_context()

    def test_cycle_ids_are_unique(self):
        ids = {new_cycle_id() for _ in range(50)}
        assert len(ids) == 50
        assert all(i.startswith("CYC-") for i in ids)

    def test_json_includes_cycle_and_extras(self):
        set_cycle_context(cycle_id="CYC-abc", trigger="shake")
        out = json.loads(JSONFormatter().format(_record(contact="a@b.com", outcome="sent")))
        assert out["message"] == "hello"
        assert out["cycle"] == {"cycle_id": "CYC-abc", "trigger": "shake"}
        assert out["contact"] == "a@b.com"
        assert out["outcome"] == "sent"

    def test_json_without_cycle(self):
        out = json.loads(JSONFormatter().format(_record()))
        assert "cycle" not in out

    def test_pretty_shows_cycle_id(self):
        set_cycle_context(cycle_id="CYC-xyz")
        assert "[CYC-xyz]" in PrettyFormatter().format(_record())


class TestErrorEnvelope:

    def _client(self, exc):
        app = FastAPI()
        register_error_handlers(app)

        @app.get("/boom")
        async def boom():
            raise exc

        return TestClient(app)

    def test_domain_error(self):
        r = self._client(NotFoundError("contact", index=4)).get("/boom")
        assert r.status_code == 404
        err = r.json()["error"]
        assert err["code"] == "NOT_FOUND"
        assert err["details"] == {"resource": "contact", "index": 4}

    def test_no_contacts(self):
        r = self._client(NoContactsError()).get("/boom")
        assert r.status_code == 409
        assert r.json()["error"]["code"] == "NO_CONTACTS"

    def test_transport_failure_carries_contact(self):
        exc = TransportFailureError("a@b.com", "HTTP 500", status_code=500)
        assert exc.contact == "a@b.com"
        assert exc.details == {"contact": "a@b.com", "upstream_status": 500}
        assert "a@b.com" in exc.message
