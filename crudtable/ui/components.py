"""
crudtable Component Definitions — Declarative description of a table screen.

Definitions are plain dataclasses; the Reflex bridge turns them into
components at render time. This keeps the controller and forms importable
(and testable) without Reflex.

Available definitions:
    DataTableViewDef  → header, rows with selection flags, footer actions, dialog
    DialogDef         → title, opened flag, Cancel/Confirm, edit-form body
    FormDef           → an edit form's fields bound to the staging buffer
    FieldDef          → text / number / select / textarea / display
    ButtonDef         → footer and dialog actions

The edit-form contract lives here too: an EditForm receives the staging
buffer values and a write-only ``callback(field_id, value)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field as datafield
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Tuple

if TYPE_CHECKING:
    from crudtable.table.controller import DataTableController

logger = logging.getLogger("crudtable.ui.components")

FieldCallback = Callable[[str, Any], None]


@dataclass
class ComponentDef:
    """Base class for all component definitions."""
    _component_type: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self._component_type}


@dataclass
class FieldDef(ComponentDef):
    """
    Form field.

    text → rx.input
    number → rx.input(type="number")
    select → rx.select over ``choices`` ((value, label) pairs)
    textarea → rx.text_area
    display → read-only text, never staged
    """
    _component_type: str = "field"

    name: str = ""
    label: Optional[str] = None
    field_type: str = "text"  # text | number | select | textarea | display
    read_only: bool = False
    choices: List[Tuple[Any, str]] = datafield(default_factory=list)
    rows: int = 1
    width: str = "100%"
    value: Any = None

    @property
    def editable(self) -> bool:
        return not self.read_only and self.field_type != "display"

    def coerce(self, raw: Any) -> Any:
        """Map a raw UI value back to the stored type (select keys, numbers)."""
        if self.field_type == "select":
            for value, _label in self.choices:
                if str(value) == str(raw):
                    return value
            return raw
        if self.field_type == "number":
            if raw in ("", None):
                return None
            try:
                return int(raw)
            except (TypeError, ValueError):
                try:
                    return float(raw)
                except (TypeError, ValueError):
                    return raw
        return raw

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self._component_type,
            "name": self.name,
            "label": self.label or self.name.replace("_", " ").title(),
            "field_type": self.field_type,
            "read_only": self.read_only,
            "choices": [list(c) for c in self.choices],
            "rows": self.rows,
            "width": self.width,
            "value": self.value,
        }


@dataclass
class ButtonDef(ComponentDef):
    """Button bound to a controller action by name."""
    _component_type: str = "button"

    label: str = ""
    action: str = ""  # refresh | delete | edit | add | cancel | confirm
    disabled: bool = False
    variant: str = "ghost"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self._component_type,
            "label": self.label,
            "action": self.action,
            "disabled": self.disabled,
            "variant": self.variant,
        }


@dataclass
class FormDef(ComponentDef):
    """
    An edit form bound to one staging-buffer snapshot.

    Values come only from the snapshot; ``change`` is the single way out.
    """
    _component_type: str = "form"

    fields: List[FieldDef] = datafield(default_factory=list)
    callback: Optional[FieldCallback] = None

    def field(self, name: str) -> FieldDef:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)

    def change(self, name: str, raw_value: Any) -> bool:
        """
        Stage one field through the callback.

        Returns False (nothing staged) for read-only and display fields.
        """
        f = self.field(name)
        if not f.editable or self.callback is None:
            return False
        self.callback(name, f.coerce(raw_value))
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self._component_type,
            "fields": [f.to_dict() for f in self.fields],
        }


class EditForm:
    """
    Base class for per-entity edit forms.

    Subclasses declare ``fields()``; ``render`` binds them to a buffer
    snapshot. A form keeps no state of its own between renders.
    """

    name: str = ""

    def fields(self) -> List[FieldDef]:
        raise NotImplementedError

    def render(self, form_data: Mapping[str, Any], callback: FieldCallback) -> FormDef:
        bound = []
        for f in self.fields():
            bound.append(FieldDef(
                name=f.name,
                label=f.label,
                field_type=f.field_type,
                read_only=f.read_only,
                choices=list(f.choices),
                rows=f.rows,
                width=f.width,
                value=form_data.get(f.name),
            ))
        return FormDef(fields=bound, callback=callback)


@dataclass
class DialogDef(ComponentDef):
    _component_type: str = "dialog"

    opened: bool = False
    title: str = ""
    form: Optional[FormDef] = None
    actions: List[ButtonDef] = datafield(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self._component_type,
            "opened": self.opened,
            "title": self.title,
            "form": self.form.to_dict() if self.form else None,
            "actions": [a.to_dict() for a in self.actions],
        }


@dataclass
class DataTableViewDef(ComponentDef):
    """
    One rendered table screen.

    ``rows`` holds (cells, selected) pairs in mirror order; ``header`` holds
    (label, tooltip) pairs in column order.
    """
    _component_type: str = "data_table"

    header: List[Tuple[str, str]] = datafield(default_factory=list)
    rows: List[Tuple[List[Any], bool]] = datafield(default_factory=list)
    footer: List[ButtonDef] = datafield(default_factory=list)
    dialog: DialogDef = datafield(default_factory=DialogDef)
    height: str = "300px"

    def button(self, action: str) -> ButtonDef:
        for b in self.footer:
            if b.action == action:
                return b
        raise KeyError(action)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self._component_type,
            "header": [list(h) for h in self.header],
            "rows": [{"cells": cells, "selected": selected} for cells, selected in self.rows],
            "footer": [b.to_dict() for b in self.footer],
            "dialog": self.dialog.to_dict(),
            "height": self.height,
        }


def build_table_view(
    controller: "DataTableController",
    form: EditForm,
    height: str = "300px",
) -> DataTableViewDef:
    """
    Project a controller's current state into a view definition.

    Delete and Edit are disabled while nothing is selected; Refresh and Add
    are always available.
    """
    no_selection = not controller.selected
    footer = [
        ButtonDef(label="Refresh", action="refresh"),
        ButtonDef(label="Delete", action="delete", disabled=no_selection),
        ButtonDef(label="Edit", action="edit", disabled=no_selection),
        ButtonDef(label="Add", action="add"),
    ]

    dialog_state = controller.dialog
    props = controller.form_props()
    dialog = DialogDef(
        opened=dialog_state.opened,
        title=dialog_state.title,
        form=form.render(props["form_data"], props["callback"]) if dialog_state.opened else None,
        actions=[
            ButtonDef(label="Cancel", action="cancel", variant="soft"),
            ButtonDef(label="Confirm", action="confirm", variant="solid"),
        ],
    )

    return DataTableViewDef(
        header=controller.header_cells(),
        rows=[
            (cells, controller.is_selected(index))
            for index, cells in enumerate(controller.table_cells())
        ],
        footer=footer,
        dialog=dialog,
        height=height,
    )
