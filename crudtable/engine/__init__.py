"""crudtable Engine — Configuration, errors, structured logging, HTTP transport."""

from crudtable.engine.errors import CrudTableError  # noqa: F401
from crudtable.engine.transport import CrudTransport  # noqa: F401

__all__ = [
    "CrudTableError",
    "CrudTransport",
]
