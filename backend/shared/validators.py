"""Settings validation helpers shared by every service that reads env config."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo


def parse_cors_origins(value: str | list[str]) -> list[str]:
    """Accept a list, a JSON array string or a comma separated string of origins.

    An empty result is rejected: a server without allowed origins cannot be
    reached from any browser client.
    """
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                value = json.loads(text)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON array: {e}") from e
            if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
                raise ValueError("JSON value must be an array of strings")
        else:
            value = [origin.strip() for origin in text.split(",") if origin.strip()]
    if not value:
        raise ValueError("cors origins must not be empty")
    return value


class CorsEnvSettingsSource(EnvSettingsSource):
    """Env source that hands ``cors_origins`` to its validator as the raw string.

    pydantic-settings would otherwise JSON-decode list fields itself and fail
    on the comma separated form.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name == "cors_origins" and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
