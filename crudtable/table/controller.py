"""
DataTableController — generic CRUD table over four HTTP endpoints.

Owns three pieces of state, none of which leave this object by reference:
    - the dataset mirror: the last successfully fetched record list
    - the selection: row indices into the mirror
    - the dialog: an immutable DialogState holding the staging buffer

States (table mode × dialog mode):
    Idle(noSelection) ⇄ Idle(selected)       row selection
    Idle(*)        → DialogOpen(Add)          open_dialog(ADD)
    Idle(selected) → DialogOpen(Edit)         open_dialog(EDIT)
    DialogOpen(*)  → Idle(*)                  close_dialog_cancel / close_dialog_submit

Network calls started by a gesture (refresh, delete, confirm) run as detached
asyncio tasks. The gesture's own state change is applied before the task
starts, so Confirm closes the dialog before the server has answered. Failed
requests are logged and otherwise dropped: the mirror is simply not
refreshed. There is no ordering between tasks; whichever fetch finishes last
defines the mirror.

Everything runs on one event loop, so no locks are needed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from crudtable.engine.config import TableConfig
from crudtable.engine.errors import CrudTableError, CrudTableStateError
from crudtable.engine.logging import log, log_table_event
from crudtable.engine.transport import CrudTransport
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
from crudtable.table.records import (
    Record,
    TableField,
    build_fields,
    clone_record,
    header_cells,
    primary_key_of,
    project_row,
)
from crudtable.table.selection import SelectionInput, SelectionModel

logger = logging.getLogger("crudtable.table.controller")

FailureHook = Callable[[str, CrudTableError], None]


class DataTableController:
    """
    One table instance: configuration, mirror, selection, dialog.

    Usage:
        controller = DataTableController("tasks", table_config, CrudTransport(client_cfg, "tasks"))
        await controller.fetch_data()
        controller.handle_row_selection([0])
        controller.open_dialog(DialogMode.EDIT)
        controller.update_field("name", "B")
        controller.close_dialog_submit()
        await controller.wait_idle()
    """

    def __init__(
        self,
        name: str,
        config: TableConfig,
        transport: CrudTransport,
        on_request_failed: Optional[FailureHook] = None,
    ):
        self._name = name
        self._config = config
        self._transport = transport
        self._fields: List[TableField] = build_fields(config.table_fields)
        self._primary_field = config.primary_field
        self._default_data: Record = clone_record(config.default_data)
        self._selection_policy = config.selection_policy
        self._on_request_failed = on_request_failed

        self._rows: List[Record] = []
        self._selection = SelectionModel(self._default_data)
        self._dialog: DialogState = closed_dialog()

        self._pending: Set[asyncio.Task] = set()

    # -----------------------------------------------------------------------
    # Read-only views
    # -----------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def fields(self) -> List[TableField]:
        return list(self._fields)

    @property
    def primary_field(self) -> str:
        return self._primary_field

    @property
    def default_data(self) -> Record:
        return clone_record(self._default_data)

    @property
    def rows(self) -> List[Record]:
        """Copy of the mirror; callers cannot patch it in place."""
        return [clone_record(row) for row in self._rows]

    @property
    def selected(self) -> List[int]:
        return self._selection.selected

    @property
    def current_record(self) -> Record:
        return clone_record(self._selection.current_record)

    @property
    def dialog(self) -> DialogState:
        return self._dialog

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def header_cells(self):
        return header_cells(self._fields)

    def table_cells(self) -> List[List[Any]]:
        return [project_row(row, self._fields) for row in self._rows]

    # -----------------------------------------------------------------------
    # Dataset mirror
    # -----------------------------------------------------------------------

    async def fetch_data(self) -> bool:
        """
        Re-read the full record set and replace the mirror in one step.

        Returns False, leaving the mirror untouched, if the request failed.
        """
        try:
            rows = await self._transport.fetch(self._config.urls.fetch)
        except CrudTableError as e:
            self._report_failure("fetch", e)
            return False

        self._rows = rows
        self._selection.reconcile(self._rows, self._selection_policy)
        log(log_table_event(self._name, "mirror_replaced", {"rows": len(rows)}))
        logger.debug(f"Table '{self._name}' mirror replaced ({len(rows)} rows)")
        return True

    def refresh(self) -> asyncio.Task:
        """Refresh gesture: fetch as a detached task."""
        return self._spawn(self.fetch_data())

    # -----------------------------------------------------------------------
    # Selection
    # -----------------------------------------------------------------------

    def is_selected(self, index: int) -> bool:
        return self._selection.is_selected(index)

    def handle_row_selection(self, indices: SelectionInput) -> List[int]:
        return self._selection.handle_row_selection(indices, self._rows)

    # -----------------------------------------------------------------------
    # Delete
    # -----------------------------------------------------------------------

    def delete_selected(self) -> List[asyncio.Task]:
        """
        One independent delete request per selected row.

        Each success triggers its own refresh, so N rows may cause N fetches.
        A failure only skips that row's refresh.
        """
        tasks = []
        for index in self._selection.selected:
            key = primary_key_of(self._rows[index], self._primary_field)
            tasks.append(self._spawn(self._delete_one(key)))
        log(log_table_event(self._name, "delete_requested", {"count": len(tasks)}))
        return tasks

    async def _delete_one(self, key: Record) -> None:
        try:
            await self._transport.delete(self._config.urls.delete, key)
        except CrudTableError as e:
            self._report_failure("delete", e)
            return
        await self.fetch_data()

    # -----------------------------------------------------------------------
    # Dialog
    # -----------------------------------------------------------------------

    def open_dialog(self, mode: Union[DialogMode, str]) -> DialogState:
        """
        Open the Add or Edit dialog.

        Edit needs a selection and snapshots the first selected row's primary
        key. Add ignores the selection and starts from the default template.

        Raises:
            CrudTableStateError if Edit is requested with nothing selected.
        """
        mode = DialogMode.parse(mode)
        if mode is DialogMode.EDIT:
            if not self._selection.has_selection:
                raise CrudTableStateError(
                    "Cannot edit: no row selected", table=self._name, operation="open_dialog"
                )
            self._dialog = open_for_edit(self._selection.current_record, self._primary_field)
        else:
            self._dialog = open_for_add(self._default_data)

        log(log_table_event(self._name, "dialog_opened", {"mode": mode.value}))
        return self._dialog

    def update_field(self, field_id: str, value: Any) -> None:
        """
        The one mutator handed to the edit form: stage a single field.

        Ignored when no dialog is open.
        """
        if not self._dialog.opened:
            logger.debug(f"Table '{self._name}': field '{field_id}' update ignored, dialog closed")
            return
        self._dialog = with_field(self._dialog, field_id, value)

    # Name the edit-form contract uses for the callback.
    update_task_data_callback = update_field

    def form_props(self) -> Dict[str, Any]:
        """What the edit form is given: a snapshot of the buffer and the write callback."""
        return {"form_data": dict(self._dialog.staging_buffer), "callback": self.update_field}

    def close_dialog_cancel(self) -> None:
        """Discard the staging buffer. No request is made."""
        self._dialog = closed_dialog()

    def close_dialog_submit(self) -> asyncio.Task:
        """
        Confirm: issue the create/update request and close the dialog now.

        The dialog is reset before the request completes; a failed commit is
        only logged.

        Raises:
            CrudTableStateError if the dialog is not open.
        """
        commit = build_commit(self._dialog, self._default_data)
        self._dialog = closed_dialog()
        log(log_table_event(self._name, "dialog_submitted", {"mode": commit.mode.value}))
        return self._spawn(self._commit(commit))

    async def _commit(self, commit: CommitRequest) -> None:
        operation = commit.mode.value
        try:
            if commit.mode is DialogMode.ADD:
                await self._transport.add(self._config.urls.add, commit.record)
            else:
                await self._transport.update(
                    self._config.urls.update, commit.entries, commit.conditions
                )
        except CrudTableError as e:
            self._report_failure(operation, e)
            return
        await self.fetch_data()

    # -----------------------------------------------------------------------
    # Detached tasks
    # -----------------------------------------------------------------------

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait until every detached request, and the refreshes they trigger, has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def cancel_pending(self) -> int:
        """Cancel in-flight requests. Nothing calls this by default."""
        tasks = list(self._pending)
        for task in tasks:
            task.cancel()
        return len(tasks)

    async def aclose(self) -> None:
        await self.wait_idle()
        await self._transport.aclose()

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _report_failure(self, operation: str, error: CrudTableError) -> None:
        logger.warning(f"Table '{self._name}' {operation} failed: {error.message}")
        log(log_table_event(self._name, f"{operation}_failed", error.to_dict(), level="ERROR"))
        if self._on_request_failed is not None:
            self._on_request_failed(operation, error)


def build_controller(
    name: str,
    config: TableConfig,
    client_config=None,
    http_transport=None,
    log_payloads: bool = False,
    on_request_failed: Optional[FailureHook] = None,
) -> DataTableController:
    """Wire a controller to its own transport."""
    transport = CrudTransport(
        client_config,
        table=name,
        http_transport=http_transport,
        log_payloads=log_payloads,
    )
    return DataTableController(name, config, transport, on_request_failed=on_request_failed)
