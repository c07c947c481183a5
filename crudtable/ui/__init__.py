"""
crudtable UI — Component definitions and the Reflex bridge.

The bridge imports reflex; import it directly from crudtable.ui.reflex_bridge.
"""

from crudtable.ui.components import (  # noqa: F401
    ButtonDef,
    DataTableViewDef,
    DialogDef,
    EditForm,
    FieldDef,
    FormDef,
    build_table_view,
)

__all__ = [
    "ButtonDef",
    "DataTableViewDef",
    "DialogDef",
    "EditForm",
    "FieldDef",
    "FormDef",
    "build_table_view",
]
