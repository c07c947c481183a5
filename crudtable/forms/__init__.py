"""crudtable Forms — Pluggable edit forms, one per record type."""

from typing import Dict

from crudtable.forms.task_form import TaskForm
from crudtable.ui.components import EditForm

FORMS: Dict[str, EditForm] = {
    TaskForm.name: TaskForm(),
}


def get_form(name: str) -> EditForm:
    """Look up a registered edit form by name."""
    if name not in FORMS:
        raise KeyError(f"No edit form named '{name}'. Available: {sorted(FORMS)}")
    return FORMS[name]


__all__ = ["FORMS", "TaskForm", "get_form"]
