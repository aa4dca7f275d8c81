"""Validation helpers for service settings."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from collections.abc import Collection

    from pydantic.fields import FieldInfo
    from pydantic_settings import BaseSettings


def parse_string_list(value: str | list[str], *, allow_empty: bool = False) -> list[str]:
    """Parse a string list from an environment variable or config value.

    Accepts a list of strings, a JSON array string ('["a","b"]') or a
    comma-separated string ('a,b'). Raises ValueError for blank strings and
    malformed JSON, and for empty lists unless allow_empty is set.
    """
    if isinstance(value, list):
        if not allow_empty and not value:
            raise ValueError("String list value must not be empty")
        return value

    stripped = value.strip()
    if not stripped:
        raise ValueError("String list value must not be empty")

    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON array: {e}") from e
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise ValueError("JSON value must be an array of strings")
        if not allow_empty and not parsed:
            raise ValueError("String list value must not be empty")
        return parsed

    result = [item.strip() for item in stripped.split(",") if item.strip()]
    if not allow_empty and not result:
        raise ValueError("String list value must not be empty")
    return result


class StringListEnvSettingsSource(EnvSettingsSource):
    """Env settings source that hands string-list fields to validators unparsed.

    pydantic-settings JSON-decodes list-typed fields from env vars before
    validators run, which rejects the CSV form. Raw strings for the named
    fields are passed through so parse_string_list can accept both.
    """

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        string_list_fields: Collection[str] = ("cors_origins",),
        **kwargs: Any,  # noqa: ANN401
    ) -> None:
        self.string_list_fields = frozenset(string_list_fields)
        super().__init__(settings_cls, **kwargs)

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in self.string_list_fields and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
