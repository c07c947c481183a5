"""
Record helpers — the plain-data shapes the table passes around.

A Record is an opaque ``Dict[str, Any]``. The table only ever interprets the
primary-key field; everything else is carried through untouched.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from crudtable.engine.config import TableFieldConfig

Record = Dict[str, Any]


@dataclass(frozen=True)
class TableField:
    """One column: ``name`` in the header, ``tooltip`` on hover, ``identifier`` into the record."""
    name: str
    identifier: str
    tooltip: str = ""

    @classmethod
    def from_config(cls, cfg: TableFieldConfig) -> "TableField":
        return cls(name=cfg.name, identifier=cfg.identifier, tooltip=cfg.tooltip)

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "tooltip": self.tooltip, "identifier": self.identifier}


def clone_record(record: Mapping[str, Any]) -> Record:
    """Structural deep copy. Nested lists/dicts are copied, never shared."""
    return copy.deepcopy(dict(record))


def restrict_to_template(record: Mapping[str, Any], template: Mapping[str, Any]) -> Record:
    """
    Keep the keys of ``template`` that ``record`` has, in template order.

    A template key missing from ``record`` is left out, so the update never
    writes a column the buffer did not carry.
    """
    return {key: copy.deepcopy(record[key]) for key in template if key in record}


def primary_key_of(record: Mapping[str, Any], primary_field: str) -> Record:
    """Single-field mapping ``{primary_field: value}``."""
    return {primary_field: record.get(primary_field)}


def header_cells(fields: Sequence[TableField]) -> List[Tuple[str, str]]:
    """(label, tooltip) per column, in column order."""
    return [(f.name, f.tooltip) for f in fields]


def project_row(row: Mapping[str, Any], fields: Sequence[TableField]) -> List[Any]:
    """Cell values for one row, in column order. Missing keys project to ''."""
    return [row.get(f.identifier, "") for f in fields]


def build_fields(configs: Iterable[TableFieldConfig]) -> List[TableField]:
    return [TableField.from_config(c) for c in configs]
