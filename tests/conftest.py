"""
crudtable Test Suite — Shared fixtures and configuration.

HTTP never leaves the process: FakeBackend serves the four endpoints
through an httpx.MockTransport.

Run:  pytest tests/ -v
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs

import httpx
import pytest

from crudtable.engine.config import ClientConfig, EndpointUrls, TableConfig, TableFieldConfig


# ---------------------------------------------------------------------------
# Global state isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_globals():
    """Reset config and log-queue singletons between tests."""
    import crudtable.engine.config as cfg_mod
    import crudtable.engine.logging as log_mod

    cfg_mod._config = None
    yield
    log_mod.shutdown_logging()
    cfg_mod._config = None


# ---------------------------------------------------------------------------
# Fake backend
# ---------------------------------------------------------------------------

class FakeBackend:
    """
    In-memory server for /fetch, /delete, /add, /update.

    ``fail`` maps a path to a status code to return instead of handling it;
    ``down`` makes every request raise a connection error.
    """

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, primary_field: str = "id"):
        self.rows: List[Dict[str, Any]] = [dict(r) for r in rows or []]
        self.primary_field = primary_field
        self.requests: List[httpx.Request] = []
        self.fail: Dict[str, int] = {}
        self.fetch_body: Optional[str] = None
        self.down = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if self.down:
            raise httpx.ConnectError("connection refused", request=request)
        if path in self.fail:
            return httpx.Response(self.fail[path], text="server error")

        pk = self.primary_field
        if path == "/fetch":
            if self.fetch_body is not None:
                return httpx.Response(200, text=self.fetch_body)
            return httpx.Response(200, json=self.rows)
        if path == "/delete":
            key = parse_qs(request.content.decode())[pk][0]
            self.rows = [r for r in self.rows if str(r.get(pk)) != key]
            return httpx.Response(200, json={"ok": True})
        if path == "/add":
            record = json.loads(request.content)
            record[pk] = max([r.get(pk, 0) for r in self.rows] + [0]) + 1
            self.rows.append(record)
            return httpx.Response(200, json={"ok": True})
        if path == "/update":
            body = json.loads(request.content)
            for row in self.rows:
                if all(row.get(k) == v for k, v in body["conditions"].items()):
                    row.update(body["entries"])
            return httpx.Response(200, json={"ok": True})
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def requests_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def json_bodies(self, path: str) -> List[Any]:
        return [json.loads(r.content) for r in self.requests_to(path)]

    def form_bodies(self, path: str) -> List[Dict[str, List[str]]]:
        return [parse_qs(r.content.decode()) for r in self.requests_to(path)]


@pytest.fixture
def make_backend():
    """The FakeBackend class, for tests that need their own rows or primary key."""
    return FakeBackend


@pytest.fixture
def backend():
    return FakeBackend(rows=[{"id": 1, "name": "A"}, {"id": 2, "name": "B"}, {"id": 3, "name": "C"}])


@pytest.fixture
def client_config():
    return ClientConfig(base_url="http://testserver")


@pytest.fixture
def table_config():
    """The minimal two-field table: primary key ``id`` plus ``name``."""
    return TableConfig(
        table_fields=[
            TableFieldConfig(name="ID", tooltip="Identifier", identifier="id"),
            TableFieldConfig(name="Name", tooltip="Display name", identifier="name"),
        ],
        primary_field="id",
        urls=EndpointUrls(fetch="/fetch", delete="/delete", add="/add", update="/update"),
        default_data={"id": 0, "name": ""},
    )


@pytest.fixture
def make_controller(backend, client_config, table_config):
    """Factory: controller wired to the fake backend. Extra kwargs go to build_controller."""
    from crudtable.table.controller import build_controller

    def _make(config: Optional[TableConfig] = None, fake: Optional[FakeBackend] = None, **kwargs):
        return build_controller(
            "items",
            config or table_config,
            client_config=client_config,
            http_transport=(fake or backend).transport,
            **kwargs,
        )

    return _make


@pytest.fixture
def config_file(tmp_path):
    """Write a crudtable.yaml with one ``items`` table and return its path."""
    path = tmp_path / "crudtable.yaml"
    path.write_text(
        "name: test\n"
        "client:\n"
        "  base_url: http://testserver\n"
        "  timeout: 5\n"
        "logging:\n"
        "  level: debug\n"
        "  directory: " + str(tmp_path / "logs") + "\n"
        "tables:\n"
        "  items:\n"
        "    primary_field: id\n"
        "    selection_policy: clear\n"
        "    urls: {fetch: /fetch, delete: /delete, add: /add, update: /update}\n"
        "    table_fields:\n"
        "      - {name: ID, tooltip: Identifier, identifier: id}\n"
        "      - {name: Name, identifier: name}\n"
        "    default_data: {id: 0, name: ''}\n",
        encoding="utf-8",
    )
    return path
