"""
crudtable Table — Dataset mirror, selection, edit buffer, controller.

Public API:
    DataTableController, build_controller
    DialogMode, DialogState
    SelectionModel
    TableField, Record
"""

from crudtable.table.controller import DataTableController, build_controller  # noqa: F401
from crudtable.table.edit_buffer import DialogMode, DialogState  # noqa: F401
from crudtable.table.records import Record, TableField  # noqa: F401
from crudtable.table.selection import SelectionModel  # noqa: F401

__all__ = [
    "DataTableController",
    "build_controller",
    "DialogMode",
    "DialogState",
    "Record",
    "TableField",
    "SelectionModel",
]
