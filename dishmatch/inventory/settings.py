"""
Typed operator settings.

Each setting kind is its own model, discriminated on ``type``.  Reading a
value goes through :func:`setting_value`, which dispatches over the closed
set of kinds and rejects anything else.
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

AUTO_RETRAIN_KEY = "auto_retrain"


class StringSetting(BaseModel):
    key: str
    type: Literal["string"] = "string"
    value: str


class NumberSetting(BaseModel):
    key: str
    type: Literal["number"] = "number"
    value: float


class BoolSetting(BaseModel):
    key: str
    type: Literal["bool"] = "bool"
    value: bool


class DateSetting(BaseModel):
    key: str
    type: Literal["date"] = "date"
    value: datetime


class SubSetting(BaseModel):
    key: str
    type: Literal["sub"] = "sub"
    value: Setting


Setting = Annotated[
    StringSetting | NumberSetting | BoolSetting | DateSetting | SubSetting,
    Field(discriminator="type"),
]

SubSetting.model_rebuild()

_setting_adapter: TypeAdapter[Setting] = TypeAdapter(Setting)


def parse_setting(raw: dict[str, Any]) -> Setting:
    """Validate a raw settings document into its concrete kind."""
    return _setting_adapter.validate_python(raw)


def setting_value(setting: Setting) -> str | float | bool | datetime:
    """Return the leaf value of *setting*, following nested sub-settings."""
    if isinstance(setting, StringSetting):
        return setting.value
    if isinstance(setting, NumberSetting):
        return setting.value
    if isinstance(setting, BoolSetting):
        return setting.value
    if isinstance(setting, DateSetting):
        return setting.value
    if isinstance(setting, SubSetting):
        return setting_value(setting.value)
    raise TypeError(f"Unknown setting kind: {type(setting).__name__}")


def bool_setting_value(setting: Setting | None, default: bool) -> bool:
    if setting is None:
        return default
    value = setting_value(setting)
    if not isinstance(value, bool):
        raise TypeError(f"Setting {setting.key!r} does not hold a boolean")
    return value
