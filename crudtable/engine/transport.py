"""
crudtable Transport — Issues the four table requests over HTTP.

Wire contract:
    fetch   GET  {urls.fetch}                 → JSON array of record objects
    delete  POST {urls.delete}  form-encoded  {primary_field: value}
    add     POST {urls.add}     JSON          full staging buffer
    update  POST {urls.update}  JSON          {"entries": {...}, "conditions": {...}}

Any 2xx status is success. Everything else is raised as a CrudTableError
subclass; deciding whether to surface or swallow it is the caller's job.

Uses one pooled httpx.AsyncClient per transport instance.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from crudtable.engine.config import ClientConfig
from crudtable.engine.errors import CrudTableResponseError, CrudTableTransportError
from crudtable.engine.logging import log, log_table_request

logger = logging.getLogger("crudtable.engine.transport")

Record = Dict[str, Any]


class CrudTransport:
    """
    Async HTTP client for one table's endpoints.

    Usage:
        transport = CrudTransport(ClientConfig(base_url="http://localhost:5000"))
        rows = await transport.fetch("/task/fetch")
        await transport.aclose()

    Tests inject an ``httpx.MockTransport`` via ``http_transport``.
    """

    def __init__(
        self,
        client_config: Optional[ClientConfig] = None,
        table: str = "",
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        log_payloads: bool = False,
    ):
        self._config = client_config or ClientConfig()
        self._table = table
        self._http_transport = http_transport
        self._log_payloads = log_payloads
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def table(self) -> str:
        return self._table

    def _get_client(self) -> httpx.AsyncClient:
        """Create the pooled client on first use."""
        if self._client is None:
            limits = httpx.Limits(
                max_connections=self._config.max_connections,
                max_keepalive_connections=self._config.max_keepalive,
            )
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                limits=limits,
                timeout=httpx.Timeout(self._config.timeout, connect=self._config.connect_timeout),
                transport=self._http_transport,
                follow_redirects=True,
            )
            logger.debug(f"Created httpx client for table '{self._table}' ({self._config.base_url})")
        return self._client

    async def aclose(self) -> None:
        """Close the underlying client. Safe to call more than once."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # -----------------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------------

    async def fetch(self, url: str) -> List[Record]:
        """
        Read the full record set.

        Raises:
            CrudTableResponseError on non-2xx status or a body that is not
            a JSON array of objects.
        """
        response = await self._send("fetch", "GET", url)
        try:
            body = response.json()
        except ValueError as e:
            raise CrudTableResponseError(
                f"Fetch response from {url} is not valid JSON: {e}",
                table=self._table,
                operation="fetch",
                url=url,
                status_code=response.status_code,
                response_body=response.text[:500],
            )
        if not isinstance(body, list) or not all(isinstance(row, dict) for row in body):
            raise CrudTableResponseError(
                f"Fetch response from {url} must be a JSON array of objects",
                table=self._table,
                operation="fetch",
                url=url,
                status_code=response.status_code,
                response_body=response.text[:500],
            )
        return body

    async def delete(self, url: str, key: Record) -> None:
        """Delete one record identified by its single-field primary key mapping. None is sent empty."""
        data = {k: "" if v is None else str(v) for k, v in key.items()}
        await self._send("delete", "POST", url, data=data)

    async def add(self, url: str, record: Record) -> None:
        """Create a record from the full staging buffer."""
        await self._send("add", "POST", url, json=record)

    async def update(self, url: str, entries: Record, conditions: Record) -> None:
        """Update the record matching ``conditions`` with ``entries``."""
        await self._send("update", "POST", url, json={"entries": entries, "conditions": conditions})

    # -----------------------------------------------------------------------
    # HTTP
    # -----------------------------------------------------------------------

    async def _send(
        self,
        operation: str,
        method: str,
        url: str,
        data: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
    ) -> httpx.Response:
        client = self._get_client()
        start_time = time.monotonic()
        body = data if data is not None else json

        try:
            response = await client.request(method, url, data=data, json=json)
        except httpx.HTTPError as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            log(log_table_request(
                self._table, operation, method, url, None, duration_ms, False,
                log_payload=self._log_payloads, request_body=body, error=str(e),
            ))
            raise CrudTableTransportError(
                f"{operation} request to {url} failed: {e}",
                table=self._table,
                operation=operation,
                url=url,
            ) from e

        duration_ms = (time.monotonic() - start_time) * 1000
        success = response.is_success
        log(log_table_request(
            self._table, operation, method, url, response.status_code, duration_ms, success,
            log_payload=self._log_payloads, request_body=body,
        ))

        if not success:
            raise CrudTableResponseError(
                f"{operation} request to {url} returned HTTP {response.status_code}",
                table=self._table,
                operation=operation,
                url=url,
                status_code=response.status_code,
                response_body=response.text[:500],
            )

        logger.debug(f"{method} {url} → {response.status_code} ({duration_ms:.1f}ms)")
        return response
