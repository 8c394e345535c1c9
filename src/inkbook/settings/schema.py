"""Schema helpers for the application settings file."""

from __future__ import annotations

from copy import deepcopy
from typing import Any

from jsonschema import Draft202012Validator

from ..config import (
    DEFAULT_CONFLICT_POLICY,
    DEFAULT_CREATE_POSITION,
    DEFAULT_MUTATION_TIMEOUT_SEC,
    DEFAULT_OVERSCAN,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
)

_LIST_PROPERTIES: dict[str, Any] = {
    "page_size": {"type": "integer", "minimum": 1, "maximum": MAX_PAGE_SIZE},
    "overscan": {"type": "integer", "minimum": 0},
    "mutation_timeout": {"type": "number", "exclusiveMinimum": 0},
    "create_position": {"type": "string", "enum": ["front", "back"]},
    "conflict_policy": {"type": "string", "enum": ["client_wins", "server_wins"]},
}

SETTINGS_SCHEMA: dict[str, Any] = {
    "$id": "inkbook/settings.schema.json",
    "type": "object",
    "required": ["schema", "ui", "lists"],
    "properties": {
        "schema": {"const": "inkbook/settings@1"},
        "database_path": {"type": ["string", "null"]},
        "ui": {
            "type": "object",
            "properties": {
                "theme": {"type": "string", "enum": ["light", "dark", "system"]},
                "sidebar_open": {"type": "boolean"},
            },
            "additionalProperties": True,
        },
        "lists": {
            "type": "object",
            "required": list(_LIST_PROPERTIES),
            "properties": {
                **_LIST_PROPERTIES,
                "overrides": {
                    "type": "object",
                    "additionalProperties": {
                        "type": "object",
                        "properties": _LIST_PROPERTIES,
                        "additionalProperties": False,
                    },
                },
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": True,
}

DEFAULT_SETTINGS: dict[str, Any] = {
    "schema": "inkbook/settings@1",
    "database_path": None,
    "ui": {
        "theme": "system",
        "sidebar_open": True,
    },
    "lists": {
        "page_size": DEFAULT_PAGE_SIZE,
        "overscan": DEFAULT_OVERSCAN,
        "mutation_timeout": DEFAULT_MUTATION_TIMEOUT_SEC,
        "create_position": DEFAULT_CREATE_POSITION,
        "conflict_policy": DEFAULT_CONFLICT_POLICY,
        "overrides": {},
    },
}

_validator = Draft202012Validator(SETTINGS_SCHEMA)


def merge_with_defaults(data: dict[str, Any] | None) -> dict[str, Any]:
    """Merge *data* with :data:`DEFAULT_SETTINGS` and validate the result."""

    merged = deepcopy(DEFAULT_SETTINGS)
    if data:
        for key, value in data.items():
            if key in ("ui", "lists") and isinstance(value, dict):
                target = merged.setdefault(key, {})
                for sub_key, sub_value in value.items():
                    if sub_key == "overrides" and isinstance(sub_value, dict):
                        target["overrides"] = deepcopy(sub_value)
                    else:
                        target[sub_key] = sub_value
                continue
            merged[key] = value
    _validator.validate(merged)
    return merged


def validate_settings(data: dict[str, Any]) -> None:
    """Validate *data* against the settings schema."""

    _validator.validate(data)


def resolve_list_section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """Return the ``lists`` values for *name* with its overrides applied."""

    lists = data.get("lists", {})
    resolved = {key: lists[key] for key in _LIST_PROPERTIES if key in lists}
    resolved.update(lists.get("overrides", {}).get(name, {}))
    return resolved


__all__ = [
    "DEFAULT_SETTINGS",
    "SETTINGS_SCHEMA",
    "merge_with_defaults",
    "resolve_list_section",
    "validate_settings",
]
