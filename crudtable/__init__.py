"""
crudtable — Generic CRUD data table over HTTP endpoints.
Version: 1.0

One controller, parameterized by column definitions, a primary-key field,
four endpoint URLs and a default record, drives any record type. The edit
dialog is a pluggable form that only sees a staging copy of the record.
"""

__version__ = "1.0.0"
__all__ = ["engine", "table", "ui", "forms", "tables"]
