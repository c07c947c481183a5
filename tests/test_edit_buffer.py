"""Unit tests for crudtable.table.edit_buffer — dialog state and commit building."""

import dataclasses

import pytest

from crudtable.engine.errors import CrudTableStateError
from crudtable.table.edit_buffer import (
    CommitRequest,
    DialogMode,
    DialogState,
    build_commit,
    closed_dialog,
    open_for_add,
    open_for_edit,
    with_field,
)

DEFAULT = {"id": 0, "name": ""}


class TestDialogMode:
    def test_titles(self):
        assert DialogMode.ADD.title == "Add"
        assert DialogMode.EDIT.title == "Edit"

    def test_parse(self):
        assert DialogMode.parse("Add") is DialogMode.ADD
        assert DialogMode.parse(" EDIT ") is DialogMode.EDIT
        assert DialogMode.parse(DialogMode.ADD) is DialogMode.ADD

    def test_parse_unknown(self):
        with pytest.raises(CrudTableStateError):
            DialogMode.parse("Remove")


class TestTransitions:
    def test_closed(self):
        state = closed_dialog()
        assert state.opened is False
        assert state.title == ""
        assert state.staging_buffer == {}

    def test_open_for_add_copies_template(self):
        template = {"id": 0, "tags": []}
        state = open_for_add(template)
        assert state.opened and state.mode is DialogMode.ADD
        assert state.title == "Add"
        state.staging_buffer["tags"].append("x")
        assert template == {"id": 0, "tags": []}

    def test_open_for_edit_snapshots_key(self):
        record = {"id": 5, "name": "A"}
        state = open_for_edit(record, "id")
        assert state.mode is DialogMode.EDIT
        assert state.primary_key_snapshot == {"id": 5}
        assert state.staging_buffer == record
        assert state.staging_buffer is not record

    def test_with_field_returns_new_state(self):
        state = open_for_add(DEFAULT)
        updated = with_field(state, "name", "B")
        assert updated.staging_buffer == {"id": 0, "name": "B"}
        assert state.staging_buffer == {"id": 0, "name": ""}
        assert updated.mode is DialogMode.ADD

    def test_with_field_new_key(self):
        state = with_field(open_for_add(DEFAULT), "extra", 1)
        assert list(state.staging_buffer) == ["id", "name", "extra"]

    def test_with_field_closed_is_noop(self):
        state = closed_dialog()
        assert with_field(state, "name", "B") is state

    def test_state_is_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            open_for_add(DEFAULT).opened = False

    def test_to_dict(self):
        d = open_for_edit({"id": 1, "name": "A"}, "id").to_dict()
        assert d == {
            "opened": True,
            "title": "Edit",
            "primary_key_snapshot": {"id": 1},
            "staging_buffer": {"id": 1, "name": "A"},
        }


class TestBuildCommit:
    def test_closed_dialog_rejected(self):
        with pytest.raises(CrudTableStateError):
            build_commit(closed_dialog(), DEFAULT)

    def test_add_carries_full_buffer(self):
        state = with_field(open_for_add(DEFAULT), "extra", True)
        commit = build_commit(state, DEFAULT)
        assert commit.mode is DialogMode.ADD
        assert commit.payload() == {"id": 0, "name": "", "extra": True}

    def test_edit_restricts_to_default_keys(self):
        state = open_for_edit({"a": 1, "b": 2, "c": 3, "pk": 9}, "pk")
        commit = build_commit(state, {"a": 0, "b": 0})
        assert commit.entries == {"a": 1, "b": 2}
        assert commit.conditions == {"pk": 9}
        assert commit.payload() == {"entries": {"a": 1, "b": 2}, "conditions": {"pk": 9}}

    def test_edit_condition_survives_primary_key_change(self):
        state = with_field(open_for_edit({"id": 1, "name": "A"}, "id"), "id", 99)
        commit = build_commit(state, DEFAULT)
        assert commit.conditions == {"id": 1}
        assert commit.entries == {"id": 99, "name": "A"}

    def test_commit_request_defaults(self):
        commit = CommitRequest(mode=DialogMode.ADD)
        assert commit.payload() == {}

    def test_dialog_state_default(self):
        assert DialogState() == closed_dialog()
