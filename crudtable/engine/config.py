"""
crudtable Configuration — Load and validate crudtable.yaml at startup.

Usage:
    from crudtable.engine.config import load_config, get_config, get_table_config
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from crudtable.engine.errors import CrudTableConfigError

CONFIG_FILENAME = "crudtable.yaml"

SELECTION_POLICIES = ("preserve", "clear")


# ---------------------------------------------------------------------------
# Pydantic models for a single table
# ---------------------------------------------------------------------------

class TableFieldConfig(BaseModel):
    """One column: header label, header tooltip, record key."""
    name: str
    tooltip: str = ""
    identifier: str


class EndpointUrls(BaseModel):
    fetch: str
    delete: str
    add: str
    update: str


class TableConfig(BaseModel):
    """Everything the embedding caller hands to a DataTableController."""
    table_fields: List[TableFieldConfig] = Field(default_factory=list)
    primary_field: str
    urls: EndpointUrls
    default_data: Dict[str, Any] = Field(default_factory=dict)
    selection_policy: str = "preserve"
    form: Optional[str] = None

    @field_validator("primary_field")
    @classmethod
    def validate_primary_field(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("primary_field must not be empty")
        return v

    @field_validator("selection_policy")
    @classmethod
    def validate_selection_policy(cls, v: str) -> str:
        if v not in SELECTION_POLICIES:
            raise ValueError(f"selection_policy must be preserve/clear, got '{v}'")
        return v


# ---------------------------------------------------------------------------
# Pydantic models for crudtable.yaml
# ---------------------------------------------------------------------------

class ClientConfig(BaseModel):
    base_url: str = "http://localhost:5000"
    timeout: float = 30.0
    connect_timeout: float = 10.0
    max_connections: int = 10
    max_keepalive: int = 5


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: str = ".crudtable/logs"
    log_payloads: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"invalid logging level '{v}'")
        return v


class UIConfig(BaseModel):
    table_height: str = "300px"
    max_sessions: int = 200
    frontend_port: int = 3000
    backend_port: int = 8000


class CrudTableConfig(BaseModel):
    """Root model for crudtable.yaml."""
    name: str = "crudtable"
    client: ClientConfig = ClientConfig()
    logging: LoggingConfig = LoggingConfig()
    ui: UIConfig = UIConfig()
    tables: Dict[str, TableConfig] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_tables(self) -> "CrudTableConfig":
        for name, table in self.tables.items():
            if not table.table_fields:
                raise ValueError(f"table '{name}' has no table_fields")
        return self


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

_config: Optional[CrudTableConfig] = None


def _find_project_root() -> Path:
    """Find the project root by looking for crudtable.yaml."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_FILENAME).exists():
            return parent
    return current


def load_config(config_path: Optional[str] = None) -> CrudTableConfig:
    """
    Load and validate crudtable.yaml.

    Args:
        config_path: Explicit path to crudtable.yaml. If None, auto-discovers.

    Returns:
        Validated CrudTableConfig instance.

    Raises:
        CrudTableConfigError if the file is not valid YAML or fails validation.
    """
    global _config

    if config_path is None:
        config_path = str(_find_project_root() / CONFIG_FILENAME)

    path = Path(config_path)
    if not path.exists():
        _config = CrudTableConfig()
        return _config

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise CrudTableConfigError(f"Invalid YAML in {path}: {e}", path=str(path))

    if not isinstance(raw, dict):
        raise CrudTableConfigError(f"{path} must contain a mapping", path=str(path))

    try:
        _config = CrudTableConfig(**raw)
    except ValidationError as e:
        raise CrudTableConfigError(
            f"Invalid configuration in {path}: {e.error_count()} error(s)",
            path=str(path),
            validation_errors=e.errors(),
        )
    return _config


def get_config() -> CrudTableConfig:
    """Get the currently loaded config, loading if necessary."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_table_config(name: str) -> TableConfig:
    """Get one table definition by name; built-in tables fill in when crudtable.yaml is silent."""
    tables = get_config().tables
    if name not in tables:
        from crudtable.tables import builtin_table_config

        builtin = builtin_table_config(name)
        if builtin is not None:
            return builtin
        raise CrudTableConfigError(
            f"Unknown table '{name}'. Configured tables: {sorted(tables)}",
            table=name,
        )
    return tables[name]
