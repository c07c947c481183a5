"""
Task table — columns, primary key and writable fields for task records.

Used when crudtable.yaml does not define a ``tasks`` table itself.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from crudtable.engine.config import EndpointUrls, TableConfig, TableFieldConfig

TASK_TABLE_FIELDS = [
    TableFieldConfig(name="ID", tooltip="The task ID", identifier="task_id"),
    TableFieldConfig(name="Requester", tooltip="Requester of the task", identifier="requester_id"),
    TableFieldConfig(name="Name", tooltip="The task name", identifier="name"),
    TableFieldConfig(name="Type", tooltip="The task type", identifier="type"),
    TableFieldConfig(name="Created", tooltip="Creation time", identifier="created_timestamp"),
    TableFieldConfig(name="Modified", tooltip="Last modification time", identifier="modified_timestamp"),
]

TASK_PRIMARY_FIELD = "task_id"

# Writable fields. Update requests carry exactly these keys.
TASK_DEFAULT_DATA: Dict[str, Any] = {
    "requester_id": 0,
    "name": "",
    "type": 1,
    "instruction": "",
    "question_string": "",
}


def task_table_config(url_prefix: str = "/task", selection_policy: str = "preserve") -> TableConfig:
    """Build the task TableConfig with endpoints under ``url_prefix``."""
    return TableConfig(
        table_fields=list(TASK_TABLE_FIELDS),
        primary_field=TASK_PRIMARY_FIELD,
        urls=EndpointUrls(
            fetch=f"{url_prefix}/fetch",
            delete=f"{url_prefix}/delete",
            add=f"{url_prefix}/add",
            update=f"{url_prefix}/update",
        ),
        default_data=dict(TASK_DEFAULT_DATA),
        selection_policy=selection_policy,
        form="task",
    )


BUILTIN_TABLES = {
    "tasks": task_table_config,
}


def builtin_table_config(name: str) -> Optional[TableConfig]:
    factory = BUILTIN_TABLES.get(name)
    return factory() if factory is not None else None
