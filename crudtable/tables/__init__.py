"""crudtable Tables — Built-in table definitions."""

from crudtable.tables.tasks import (  # noqa: F401
    TASK_DEFAULT_DATA,
    TASK_PRIMARY_FIELD,
    TASK_TABLE_FIELDS,
    builtin_table_config,
    task_table_config,
)
