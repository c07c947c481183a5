"""
crudtable Error Hierarchy — Structured exceptions for table CRUD failures.

All errors carry keyword context (url, operation, table, ...) so they can be
serialized into the structured request log.

Hierarchy:
    CrudTableError
    ├── CrudTableConfigError     — Invalid table / YAML configuration
    ├── CrudTableTransportError  — Network failure talking to an endpoint
    ├── CrudTableResponseError   — Non-success status or malformed body
    └── CrudTableStateError      — Illegal controller state transition
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class CrudTableError(Exception):
    """
    Base error for all crudtable failures.
    All context is serializable to JSON.
    """

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.table: Optional[str] = context.get("table")
        self.operation: Optional[str] = context.get("operation")
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to JSON-compatible dict for logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "table": self.table,
            "operation": self.operation,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k not in ("table", "operation")
            },
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.table:
            parts.append(f"table={self.table}")
        if self.operation:
            parts.append(f"operation={self.operation}")
        return " | ".join(parts)


class CrudTableConfigError(CrudTableError):
    """Configuration error — invalid crudtable.yaml or table definition."""
    pass


class CrudTableTransportError(CrudTableError):
    """The request never produced a response (connection refused, timeout, ...)."""

    def __init__(self, message: str, **context: Any):
        self.url: Optional[str] = context.get("url")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["url"] = self.url
        return d


class CrudTableResponseError(CrudTableError):
    """
    The endpoint answered, but not with something usable:
    a non-2xx status or a body that is not the expected JSON shape.
    """

    def __init__(self, message: str, **context: Any):
        self.url: Optional[str] = context.get("url")
        self.status_code: Optional[int] = context.get("status_code")
        self.response_body: Optional[str] = context.get("response_body")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["url"] = self.url
        d["status_code"] = self.status_code
        return d


class CrudTableStateError(CrudTableError):
    """Controller asked to do something its current state does not allow."""
    pass
