"""
Edit buffer & dialog lifecycle.

The dialog owns a *staging buffer*: a value copy of the record being added or
edited. Edits land in the buffer only; the dataset mirror is untouched until a
commit succeeds and the table re-fetches.

DialogState is immutable. Every transition is a pure function returning a new
state, so a form callback can never mutate a state object someone else holds.

Transitions:
    closed ──open_for_add(template)────────────► open(ADD)
    closed ──open_for_edit(record, pk)─────────► open(EDIT)
    open   ──with_field(field, value)──────────► open (same mode)
    open   ──closed_dialog()───────────────────► closed
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Union

from crudtable.engine.errors import CrudTableStateError
from crudtable.table.records import Record, clone_record, primary_key_of, restrict_to_template


class DialogMode(str, enum.Enum):
    ADD = "add"
    EDIT = "edit"

    @property
    def title(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: Union["DialogMode", str]) -> "DialogMode":
        """Accept a DialogMode or a case-insensitive title ('Add', 'EDIT', ...)."""
        if isinstance(value, DialogMode):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise CrudTableStateError(f"Unknown dialog mode '{value}'", operation="open_dialog")


@dataclass(frozen=True)
class DialogState:
    opened: bool = False
    mode: Optional[DialogMode] = None
    primary_key_snapshot: Record = field(default_factory=dict)
    staging_buffer: Record = field(default_factory=dict)

    @property
    def title(self) -> str:
        return self.mode.title if self.mode is not None else ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "opened": self.opened,
            "title": self.title,
            "primary_key_snapshot": dict(self.primary_key_snapshot),
            "staging_buffer": dict(self.staging_buffer),
        }


def closed_dialog() -> DialogState:
    return DialogState()


def open_for_add(template: Mapping[str, Any]) -> DialogState:
    """Seed the buffer from the default-record template. Selection plays no part."""
    return DialogState(
        opened=True,
        mode=DialogMode.ADD,
        staging_buffer=clone_record(template),
    )


def open_for_edit(record: Mapping[str, Any], primary_field: str) -> DialogState:
    """
    Snapshot the primary key and value-copy the record.

    The snapshot is fixed here: editing the primary-key field in the buffer
    later does not move the update target.
    """
    return DialogState(
        opened=True,
        mode=DialogMode.EDIT,
        primary_key_snapshot=clone_record(primary_key_of(record, primary_field)),
        staging_buffer=clone_record(record),
    )


def with_field(state: DialogState, field_id: str, value: Any) -> DialogState:
    """Return a new state whose buffer has ``field_id`` replaced. Key order is kept."""
    if not state.opened:
        return state
    buffer = dict(state.staging_buffer)
    buffer[field_id] = value
    return replace(state, staging_buffer=buffer)


@dataclass(frozen=True)
class CommitRequest:
    """What Confirm sends: an add of ``record`` or an update of ``entries`` where ``conditions``."""
    mode: DialogMode
    record: Record = field(default_factory=dict)
    entries: Record = field(default_factory=dict)
    conditions: Record = field(default_factory=dict)

    def payload(self) -> Record:
        if self.mode is DialogMode.ADD:
            return dict(self.record)
        return {"entries": dict(self.entries), "conditions": dict(self.conditions)}


def build_commit(state: DialogState, default_data: Mapping[str, Any]) -> CommitRequest:
    """
    Turn an open dialog into the request Confirm must issue.

    Add carries the whole buffer. Edit carries only the writable fields (the
    keys of ``default_data``) plus the primary-key snapshot as the condition.
    """
    if not state.opened or state.mode is None:
        raise CrudTableStateError("Cannot submit: dialog is not open", operation="submit")
    if state.mode is DialogMode.ADD:
        return CommitRequest(mode=DialogMode.ADD, record=clone_record(state.staging_buffer))
    return CommitRequest(
        mode=DialogMode.EDIT,
        entries=restrict_to_template(state.staging_buffer, default_data),
        conditions=clone_record(state.primary_key_snapshot),
    )
