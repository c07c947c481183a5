"""
crudtable Reflex Bridge — Renders a DataTableController as a Reflex page.

Responsibilities:
    - Keep one controller per (browser session, table), least recently used evicted
    - Mirror controller state into Reflex state vars after every event
    - Build the page: header, selectable rows, footer actions, edit dialog

Reflex state vars are plain, serializable copies. The controller stays the
single owner of mirror, selection and dialog; event handlers only forward
gestures to it and then re-sync.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Any, List, Set, Tuple

import reflex as rx

from crudtable.engine.config import get_config, get_table_config
from crudtable.forms import get_form
from crudtable.table.controller import DataTableController, build_controller
from crudtable.table.edit_buffer import DialogMode
from crudtable.ui.components import EditForm, FieldDef, build_table_view

logger = logging.getLogger("crudtable.ui.reflex_bridge")


# ---------------------------------------------------------------------------
# Controller registry
# ---------------------------------------------------------------------------

# Least recently used first. Bounded by ui.max_sessions.
_controllers: "OrderedDict[Tuple[str, str], DataTableController]" = OrderedDict()
_closing: Set[asyncio.Task] = set()


def get_controller(session_key: str, table_name: str) -> DataTableController:
    """
    Get or create the controller for one session's view of one table.

    Creating one past ``ui.max_sessions`` evicts and closes the least
    recently used controller.
    """
    key = (session_key, table_name)
    if key in _controllers:
        _controllers.move_to_end(key)
        return _controllers[key]

    config = get_config()
    _controllers[key] = build_controller(
        table_name,
        get_table_config(table_name),
        client_config=config.client,
        log_payloads=config.logging.log_payloads,
    )
    logger.info(f"Created controller for table '{table_name}' (session {session_key[:8]})")

    while len(_controllers) > max(config.ui.max_sessions, 1):
        (old_session, old_table), evicted = _controllers.popitem(last=False)
        logger.info(f"Evicted controller for table '{old_table}' (session {old_session[:8]})")
        _close_later(evicted)
    return _controllers[key]


def _close_later(controller: DataTableController) -> None:
    """Close an evicted controller once its in-flight requests finish."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(controller.aclose())
        return
    task = loop.create_task(controller.aclose())
    _closing.add(task)
    task.add_done_callback(_closing.discard)


def form_for(table_name: str) -> EditForm:
    return get_form(get_table_config(table_name).form or "task")


async def close_all_controllers() -> None:
    """Close every controller's HTTP client, evicted ones included. Called on shutdown."""
    for controller in list(_controllers.values()):
        await controller.aclose()
    _controllers.clear()
    if _closing:
        await asyncio.gather(*list(_closing), return_exceptions=True)


def _cell_text(value: Any) -> str:
    return "" if value is None else str(value)


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

class DataTableState(rx.State):
    """
    Per-session view of a DataTableController.

    Every handler forwards to the controller, then calls _sync().
    """

    table_name: str = ""
    rows: list[list[str]] = []
    selected_rows: list[int] = []
    has_selection: bool = False
    dialog_opened: bool = False
    dialog_title: str = ""
    form_values: dict[str, str] = {}

    def _controller(self) -> DataTableController:
        return get_controller(self.router.session.client_token, self.table_name)

    def _sync(self) -> None:
        controller = self._controller()
        view = build_table_view(controller, form_for(self.table_name))
        self.rows = [[_cell_text(c) for c in cells] for cells, _selected in view.rows]
        self.selected_rows = controller.selected
        self.has_selection = not view.button("edit").disabled
        self.dialog_opened = view.dialog.opened
        self.dialog_title = view.dialog.title
        if view.dialog.form is not None:
            self.form_values = {f.name: _cell_text(f.value) for f in view.dialog.form.fields}
        else:
            self.form_values = {}

    async def load(self, table_name: str):
        """on_mount: bind the table and run the initial fetch."""
        self.table_name = table_name
        await self._controller().fetch_data()
        self._sync()

    async def refresh(self):
        await self._controller().fetch_data()
        self._sync()

    def toggle_row(self, index: int):
        selected = set(self._controller().selected)
        selected ^= {index}
        self._controller().handle_row_selection(sorted(selected))
        self._sync()

    async def delete_selected(self):
        controller = self._controller()
        controller.delete_selected()
        self._sync()
        yield
        await controller.wait_idle()
        self._sync()

    def open_add(self):
        self._controller().open_dialog(DialogMode.ADD)
        self._sync()

    def open_edit(self):
        self._controller().open_dialog(DialogMode.EDIT)
        self._sync()

    def change_field(self, name: str, value: Any):
        controller = self._controller()
        props = controller.form_props()
        form_for(self.table_name).render(props["form_data"], props["callback"]).change(name, value)
        self._sync()

    def cancel(self):
        self._controller().close_dialog_cancel()
        self._sync()

    async def confirm(self):
        """Close the dialog first, then wait for the commit and its refresh."""
        controller = self._controller()
        controller.close_dialog_submit()
        self._sync()
        yield
        await controller.wait_idle()
        self._sync()


# ---------------------------------------------------------------------------
# Page
# ---------------------------------------------------------------------------

def _field_change(name: str):
    return lambda value: DataTableState.change_field(name, value)


def _render_field(f: FieldDef) -> rx.Component:
    label = f.label or f.name
    value = DataTableState.form_values[f.name]

    if f.field_type == "display":
        return rx.text(f"{label}: ", value, size="2", color="gray")
    if f.field_type == "select":
        return rx.select.root(
            rx.select.trigger(placeholder=label),
            rx.select.content(
                *[rx.select.item(text, value=str(key)) for key, text in f.choices]
            ),
            value=value,
            on_change=_field_change(f.name),
        )
    if f.field_type == "textarea":
        return rx.text_area(
            placeholder=label,
            value=value,
            rows=str(f.rows),
            width="100%",
            on_change=_field_change(f.name),
        )
    return rx.input(
        placeholder=label,
        value=value,
        type="number" if f.field_type == "number" else "text",
        disabled=f.read_only,
        width=f.width,
        on_change=_field_change(f.name),
    )


def _row(cells: rx.Var, index: rx.Var) -> rx.Component:
    return rx.table.row(
        rx.table.cell(
            rx.checkbox(
                checked=DataTableState.selected_rows.contains(index),
                on_change=lambda _checked: DataTableState.toggle_row(index),
            ),
        ),
        rx.foreach(cells, lambda value: rx.table.cell(rx.text(value, size="2"))),
    )


def data_table_page(table_name: str) -> rx.Component:
    """A full table screen: header, rows, footer actions and the edit dialog."""
    table = get_table_config(table_name)
    form = form_for(table_name)
    height = get_config().ui.table_height

    header: List[rx.Component] = [rx.table.column_header_cell("")]
    for field in table.table_fields:
        header.append(
            rx.table.column_header_cell(rx.tooltip(rx.text(field.name), content=field.tooltip or field.name))
        )

    return rx.vstack(
        rx.box(
            rx.table.root(
                rx.table.header(rx.table.row(*header)),
                rx.table.body(rx.foreach(DataTableState.rows, _row)),
                width="100%",
            ),
            max_height=height,
            overflow_y="auto",
            width="100%",
        ),
        rx.hstack(
            rx.button("Refresh", variant="ghost", on_click=DataTableState.refresh),
            rx.spacer(),
            rx.button(
                "Delete",
                variant="ghost",
                disabled=~DataTableState.has_selection,
                on_click=DataTableState.delete_selected,
            ),
            rx.button(
                "Edit",
                variant="ghost",
                disabled=~DataTableState.has_selection,
                on_click=DataTableState.open_edit,
            ),
            rx.button("Add", variant="ghost", on_click=DataTableState.open_add),
            width="100%",
        ),
        rx.dialog.root(
            rx.dialog.content(
                rx.dialog.title(DataTableState.dialog_title),
                rx.vstack(*[_render_field(f) for f in form.fields()], spacing="3", width="100%"),
                rx.hstack(
                    rx.button("Cancel", variant="soft", on_click=DataTableState.cancel),
                    rx.button("Confirm", on_click=DataTableState.confirm),
                    spacing="3",
                    justify="end",
                    width="100%",
                ),
            ),
            open=DataTableState.dialog_opened,
        ),
        spacing="4",
        width="100%",
        padding="6",
        on_mount=DataTableState.load(table_name),
    )
