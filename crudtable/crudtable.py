"""
crudtable — Reflex application entry point.

Boot sequence:
    1. _init_platform()  — load crudtable.yaml, start the structured log queue
    2. Create rx.App() and add one page per configured table
    3. On shutdown, close every controller's HTTP client and flush the log queue
"""

import contextlib
import logging

import reflex as rx

from crudtable.engine.config import get_config
from crudtable.engine.logging import init_logging, log, log_system_event, shutdown_logging
from crudtable.ui.reflex_bridge import close_all_controllers, data_table_page

logger = logging.getLogger("crudtable.startup")

_platform_initialized = False


def _init_platform() -> None:
    global _platform_initialized
    if _platform_initialized:
        return
    _platform_initialized = True

    config = get_config()
    init_logging(log_dir=config.logging.directory, level=config.logging.level)
    log(log_system_event("startup", details={"tables": sorted(config.tables) or ["tasks"]}))
    logger.info("crudtable initialized")


@contextlib.asynccontextmanager
async def _lifespan():
    yield
    await close_all_controllers()
    log(log_system_event("shutdown"))
    shutdown_logging()


def _table_names() -> list:
    return sorted(get_config().tables) or ["tasks"]


def _page_factory(name: str):
    def page() -> rx.Component:
        return data_table_page(name)

    page.__name__ = f"{name}_page"
    return page


_init_platform()

app = rx.App()
app.register_lifespan_task(_lifespan)

for _name in _table_names():
    app.add_page(
        _page_factory(_name),
        route=f"/{_name}",
        title=f"All {_name.title()}",
    )

# Redirect / → first table
app.add_page(lambda: rx.fragment(), route="/", on_load=rx.redirect(f"/{_table_names()[0]}"))
