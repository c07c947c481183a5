"""TaskForm — edit form for task records."""

from __future__ import annotations

from typing import List

from crudtable.ui.components import EditForm, FieldDef

TASK_TYPES = [
    (1, "Object Detection"),
    (2, "Classification"),
    (3, "Segmentation"),
]


class TaskForm(EditForm):
    """
    Requester id is shown but locked; timestamps are display-only and never
    staged. Everything else goes through the dialog callback.
    """

    name = "task"

    def fields(self) -> List[FieldDef]:
        return [
            FieldDef(name="requester_id", label="Requester Id", field_type="number",
                     read_only=True, width="30%"),
            FieldDef(name="name", label="Task Name", width="30%"),
            FieldDef(name="type", label="Task Type", field_type="select",
                     choices=list(TASK_TYPES), width="30%"),
            FieldDef(name="instruction", label="Task Instruction", field_type="textarea", rows=3),
            FieldDef(name="question_string", label="Task Question", field_type="textarea", rows=3),
            FieldDef(name="created_timestamp", label="Created", field_type="display"),
            FieldDef(name="modified_timestamp", label="Modified", field_type="display"),
        ]
