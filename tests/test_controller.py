"""Tests for crudtable.table.controller — DataTableController against a fake backend."""

import asyncio

import pytest

from crudtable.engine.config import EndpointUrls, TableConfig, TableFieldConfig
from crudtable.engine.errors import CrudTableResponseError, CrudTableStateError, CrudTableTransportError
from crudtable.table.edit_buffer import DialogMode


def _collect_failures():
    failures = []
    return failures, lambda operation, error: failures.append((operation, error))


class TestInitialState:
    def test_empty(self, make_controller):
        controller = make_controller()
        assert controller.name == "items"
        assert controller.rows == []
        assert controller.selected == []
        assert controller.current_record == {"id": 0, "name": ""}
        assert controller.dialog.opened is False
        assert controller.pending_count == 0
        assert controller.primary_field == "id"

    def test_header_cells(self, make_controller):
        assert make_controller().header_cells() == [("ID", "Identifier"), ("Name", "Display name")]

    def test_default_data_is_a_copy(self, make_controller):
        controller = make_controller()
        controller.default_data["name"] = "changed"
        assert controller.default_data == {"id": 0, "name": ""}


class TestFetch:
    @pytest.mark.asyncio
    async def test_mirror_matches_server(self, make_controller, backend):
        controller = make_controller()
        assert await controller.fetch_data() is True
        assert controller.rows == backend.rows
        assert controller.table_cells() == [[1, "A"], [2, "B"], [3, "C"]]
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_rows_are_copies(self, make_controller):
        controller = make_controller()
        await controller.fetch_data()
        controller.rows[0]["name"] = "patched"
        assert controller.rows[0]["name"] == "A"
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_failed_fetch_keeps_mirror(self, make_controller, backend):
        failures, hook = _collect_failures()
        controller = make_controller(on_request_failed=hook)
        await controller.fetch_data()
        before = controller.rows

        backend.rows = []
        backend.fail["/fetch"] = 500
        assert await controller.fetch_data() is False
        assert controller.rows == before
        assert failures[0][0] == "fetch"
        assert isinstance(failures[0][1], CrudTableResponseError)
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_malformed_body_keeps_mirror(self, make_controller, backend):
        failures, hook = _collect_failures()
        controller = make_controller(on_request_failed=hook)
        backend.fetch_body = '{"not": "a list"}'
        assert await controller.fetch_data() is False
        assert controller.rows == []
        assert len(failures) == 1
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_unreachable_backend(self, make_controller, backend):
        failures, hook = _collect_failures()
        controller = make_controller(on_request_failed=hook)
        backend.down = True
        assert await controller.fetch_data() is False
        assert isinstance(failures[0][1], CrudTableTransportError)
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_refresh_is_detached(self, make_controller):
        controller = make_controller()
        task = controller.refresh()
        assert isinstance(task, asyncio.Task)
        assert controller.pending_count == 1
        await controller.wait_idle()
        assert controller.pending_count == 0
        assert len(controller.rows) == 3
        await controller.aclose()


class TestSelection:
    @pytest.mark.asyncio
    async def test_current_record_follows_selection(self, make_controller):
        controller = make_controller()
        await controller.fetch_data()
        controller.handle_row_selection([1])
        assert controller.current_record == {"id": 2, "name": "B"}
        assert controller.is_selected(1)
        controller.handle_row_selection([])
        assert controller.current_record == {"id": 0, "name": ""}
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_selection_change_is_read_back_synchronously(self, make_controller):
        controller = make_controller()
        await controller.fetch_data()
        assert controller.handle_row_selection([1, 0, 1]) == [0, 1]
        assert controller.selected == [0, 1]
        assert controller.pending_count == 0
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_current_record_is_a_copy(self, make_controller):
        controller = make_controller()
        await controller.fetch_data()
        controller.handle_row_selection([0])
        controller.current_record["name"] = "patched"
        assert controller.rows[0]["name"] == "A"
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_preserve_policy_after_refresh(self, make_controller, backend):
        controller = make_controller()
        await controller.fetch_data()
        controller.handle_row_selection([0, 2])
        backend.rows = backend.rows[1:]
        await controller.fetch_data()
        assert controller.selected == [0]
        assert controller.current_record == {"id": 2, "name": "B"}
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_clear_policy_after_refresh(self, make_controller, table_config):
        config = table_config.model_copy(update={"selection_policy": "clear"})
        controller = make_controller(config=config)
        await controller.fetch_data()
        controller.handle_row_selection([1])
        await controller.fetch_data()
        assert controller.selected == []
        assert controller.current_record == {"id": 0, "name": ""}
        await controller.aclose()


class TestDialog:
    def test_edit_requires_selection(self, make_controller):
        controller = make_controller()
        with pytest.raises(CrudTableStateError):
            controller.open_dialog(DialogMode.EDIT)
        assert controller.dialog.opened is False

    @pytest.mark.asyncio
    async def test_add_ignores_selection(self, make_controller):
        controller = make_controller()
        await controller.fetch_data()
        controller.handle_row_selection([1])
        state = controller.open_dialog("Add")
        assert state.title == "Add"
        assert state.staging_buffer == {"id": 0, "name": ""}
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_edit_stages_a_copy(self, make_controller):
        controller = make_controller()
        await controller.fetch_data()
        controller.handle_row_selection([0])
        controller.open_dialog("Edit")
        controller.update_field("name", "Z")
        assert controller.dialog.staging_buffer == {"id": 1, "name": "Z"}
        assert controller.rows[0] == {"id": 1, "name": "A"}
        assert controller.current_record == {"id": 1, "name": "A"}
        await controller.aclose()

    def test_update_field_when_closed_is_ignored(self, make_controller):
        controller = make_controller()
        controller.update_field("name", "Z")
        assert controller.dialog.staging_buffer == {}

    def test_form_props(self, make_controller):
        controller = make_controller()
        controller.open_dialog(DialogMode.ADD)
        props = controller.form_props()
        props["form_data"]["name"] = "not staged"
        assert controller.dialog.staging_buffer["name"] == ""
        props["callback"]("name", "staged")
        assert controller.dialog.staging_buffer["name"] == "staged"

    def test_callback_alias(self, make_controller):
        controller = make_controller()
        controller.open_dialog(DialogMode.ADD)
        controller.update_task_data_callback("name", "via alias")
        assert controller.dialog.staging_buffer["name"] == "via alias"

    @pytest.mark.asyncio
    async def test_cancel_makes_no_request(self, make_controller, backend):
        controller = make_controller()
        await controller.fetch_data()
        backend.requests.clear()
        rows_before = controller.rows

        controller.open_dialog(DialogMode.ADD)
        controller.update_field("name", "never sent")
        controller.close_dialog_cancel()

        assert controller.dialog.opened is False
        assert controller.dialog.staging_buffer == {}
        assert controller.pending_count == 0
        assert backend.requests == []
        assert controller.rows == rows_before
        await controller.aclose()

    def test_submit_without_dialog(self, make_controller):
        controller = make_controller()
        with pytest.raises(CrudTableStateError):
            controller.close_dialog_submit()


class TestCommit:
    @pytest.mark.asyncio
    async def test_add_closes_dialog_before_response(self, make_controller, backend):
        controller = make_controller()
        controller.open_dialog(DialogMode.ADD)
        controller.update_field("name", "D")
        task = controller.close_dialog_submit()

        assert controller.dialog.opened is False
        assert not task.done()

        await controller.wait_idle()
        assert backend.json_bodies("/add") == [{"id": 0, "name": "D"}]
        assert len(backend.requests_to("/fetch")) == 1
        assert controller.rows[-1] == {"id": 4, "name": "D"}
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_update_payload_restricted_to_writable_fields(self, client_config, make_backend):
        from crudtable.table.controller import build_controller

        fake = make_backend(rows=[{"pk": 9, "a": 1, "b": 2, "c": 3}], primary_field="pk")
        config = TableConfig(
            table_fields=[TableFieldConfig(name="A", identifier="a")],
            primary_field="pk",
            urls=EndpointUrls(fetch="/fetch", delete="/delete", add="/add", update="/update"),
            default_data={"a": 0, "b": 0},
        )
        controller = build_controller("abc", config, client_config=client_config, http_transport=fake.transport)
        await controller.fetch_data()
        controller.handle_row_selection([0])
        controller.open_dialog(DialogMode.EDIT)
        controller.close_dialog_submit()
        await controller.wait_idle()

        assert fake.json_bodies("/update") == [{"entries": {"a": 1, "b": 2}, "conditions": {"pk": 9}}]
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_update_omits_fields_missing_from_record(self, client_config, make_backend):
        from crudtable.table.controller import build_controller

        fake = make_backend(rows=[{"pk": 9, "a": 1}], primary_field="pk")
        config = TableConfig(
            table_fields=[TableFieldConfig(name="A", identifier="a")],
            primary_field="pk",
            urls=EndpointUrls(fetch="/fetch", delete="/delete", add="/add", update="/update"),
            default_data={"a": 0, "b": 0},
        )
        controller = build_controller("abc", config, client_config=client_config, http_transport=fake.transport)
        await controller.fetch_data()
        controller.handle_row_selection([0])
        controller.open_dialog(DialogMode.EDIT)
        controller.update_field("a", 5)
        controller.close_dialog_submit()
        await controller.wait_idle()

        assert fake.json_bodies("/update") == [{"entries": {"a": 5}, "conditions": {"pk": 9}}]
        assert fake.rows == [{"pk": 9, "a": 5}]
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_update_targets_original_key(self, make_controller, backend):
        controller = make_controller()
        await controller.fetch_data()
        controller.handle_row_selection([0])
        controller.open_dialog(DialogMode.EDIT)
        controller.update_field("id", 42)
        controller.update_field("name", "renamed")
        controller.close_dialog_submit()
        await controller.wait_idle()

        assert backend.json_bodies("/update") == [
            {"entries": {"id": 42, "name": "renamed"}, "conditions": {"id": 1}}
        ]
        assert controller.rows[0] == {"id": 42, "name": "renamed"}
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_failed_commit_skips_refresh(self, make_controller, backend):
        failures, hook = _collect_failures()
        controller = make_controller(on_request_failed=hook)
        backend.fail["/add"] = 500
        controller.open_dialog(DialogMode.ADD)
        controller.close_dialog_submit()
        await controller.wait_idle()

        assert controller.dialog.opened is False
        assert backend.requests_to("/fetch") == []
        assert [op for op, _ in failures] == ["add"]
        await controller.aclose()


class TestDelete:
    @pytest.mark.asyncio
    async def test_one_request_per_row_each_refreshing(self, make_controller, backend):
        controller = make_controller()
        await controller.fetch_data()
        backend.requests.clear()

        controller.handle_row_selection([0, 2])
        tasks = controller.delete_selected()
        assert len(tasks) == 2
        await controller.wait_idle()

        keys = sorted(body["id"][0] for body in backend.form_bodies("/delete"))
        assert keys == ["1", "3"]
        assert len(backend.requests_to("/fetch")) == 2
        assert controller.rows == [{"id": 2, "name": "B"}]
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_nothing_selected(self, make_controller, backend):
        controller = make_controller()
        await controller.fetch_data()
        backend.requests.clear()
        assert controller.delete_selected() == []
        assert backend.requests == []
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_failed_delete_skips_its_refresh(self, make_controller, backend):
        failures, hook = _collect_failures()
        controller = make_controller(on_request_failed=hook)
        await controller.fetch_data()
        backend.requests.clear()
        backend.fail["/delete"] = 500

        controller.handle_row_selection([0])
        controller.delete_selected()
        await controller.wait_idle()

        assert backend.requests_to("/fetch") == []
        assert failures[0][0] == "delete"
        assert len(controller.rows) == 3
        await controller.aclose()


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_add_edit_delete(self, make_controller, make_backend):
        fake = make_backend(rows=[])
        controller = make_controller(fake=fake)
        await controller.fetch_data()
        assert controller.rows == []

        controller.open_dialog(DialogMode.ADD)
        controller.update_field("name", "A")
        controller.close_dialog_submit()
        await controller.wait_idle()
        assert fake.json_bodies("/add") == [{"id": 0, "name": "A"}]
        assert controller.rows == [{"id": 1, "name": "A"}]

        controller.handle_row_selection([0])
        controller.open_dialog(DialogMode.EDIT)
        assert controller.dialog.staging_buffer == {"id": 1, "name": "A"}
        controller.update_field("name", "B")
        controller.close_dialog_submit()
        await controller.wait_idle()
        assert fake.json_bodies("/update") == [{"entries": {"id": 1, "name": "B"}, "conditions": {"id": 1}}]
        assert controller.rows == [{"id": 1, "name": "B"}]

        controller.handle_row_selection([0])
        controller.delete_selected()
        await controller.wait_idle()
        assert fake.form_bodies("/delete") == [{"id": ["1"]}]
        assert controller.rows == []
        assert controller.selected == []
        await controller.aclose()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_cancel_pending(self, make_controller):
        controller = make_controller()
        controller.refresh()
        controller.refresh()
        assert controller.cancel_pending() == 2
        await controller.wait_idle()
        assert controller.pending_count == 0
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_failures_logged(self, make_controller, backend, tmp_path):
        from crudtable.engine.logging import FileLogger, init_logging, shutdown_logging

        init_logging(str(tmp_path))
        backend.fail["/fetch"] = 500
        controller = make_controller()
        await controller.fetch_data()
        await controller.aclose()
        shutdown_logging()

        events = FileLogger(str(tmp_path)).read("tables", filters={"table": "items"})
        assert events[-1]["event"] == "fetch_failed"
        assert events[-1]["level"] == "ERROR"
        assert events[-1]["details"]["status_code"] == 500
