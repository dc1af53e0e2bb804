"""
overlayconf.codec
-----------------

Structural encoding of configuration objects to and from JSON and TOML.

Encoding walks dataclass fields (skipping transient ones, honouring
aliases); lists and arrays become JSON arrays, nested dataclasses become
objects and enums are written by name.

Decoding always starts from a default-constructed instance of the target
class and assigns only the keys present in the input, so missing keys keep
their defaults.
"""

import array
import dataclasses
import json
import sys
from collections.abc import Mapping
from enum import Enum
from typing import Any, Optional

import toml

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .coercion import annotation_class, element_annotation
from .exceptions import ConfigDecodeError
from .properties import field_hints, field_name, is_dataclass_instance, is_transient

FORMAT_JSON = "json"
FORMAT_TOML = "toml"


def format_for(path) -> str:
    """Pick the file format from a path's extension (``.toml`` or JSON)."""
    return FORMAT_TOML if str(path).lower().endswith(".toml") else FORMAT_JSON


# --- Encoding ---

def to_data(value: Any) -> Any:
    """Convert a configuration value into plain JSON-compatible data."""
    if is_dataclass_instance(value):
        return {
            field_name(f): to_data(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if not is_transient(f)
        }
    if isinstance(value, Enum):
        return value.name
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, array.array):
        return value.tolist()
    if isinstance(value, (list, tuple)):
        return [to_data(item) for item in value]
    if isinstance(value, Mapping):
        return {str(k): to_data(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return [to_data(item) for item in value]
    return str(value)


def dumps(obj: Any, pretty: bool = False, fmt: str = FORMAT_JSON) -> str:
    """
    Serialize a configuration object.

    Args:
        obj: Dataclass instance to serialize.
        pretty: Indent JSON output by two spaces (TOML is always multi-line).
        fmt: ``"json"`` or ``"toml"``.
    """
    data = to_data(obj)
    if fmt == FORMAT_TOML:
        return toml.dumps(data)
    if pretty:
        return json.dumps(data, indent=2, ensure_ascii=False)
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def to_text(value: Any) -> str:
    """Render a single property value for console output."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return value.name
    return str(value)


# --- Decoding ---

def loads(cls: type, text: str, fmt: str = FORMAT_JSON) -> Any:
    """
    Parse JSON/TOML text into a new instance of ``cls``.

    Raises:
        ConfigDecodeError: If the text cannot be parsed or does not fit ``cls``.
    """
    try:
        if fmt == FORMAT_TOML:
            data = tomllib.loads(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
        raise ConfigDecodeError(f"Invalid {fmt.upper()}: {e}") from e
    return from_data(cls, data)


def from_data(cls: type, data: Any, where: Optional[str] = None) -> Any:
    """Build an instance of the dataclass ``cls`` from plain data."""
    where = where or cls.__name__
    if not isinstance(data, Mapping):
        raise ConfigDecodeError(f"{where}: expected an object, got {type(data).__name__}")
    try:
        instance = cls()
    except TypeError as e:
        raise ConfigDecodeError(f"{cls.__name__} must be constructible without arguments: {e}") from e
    _decode_into(instance, data, where)
    return instance


def _decode_into(instance: Any, data: Mapping, where: str) -> None:
    hints = field_hints(type(instance))
    for f in dataclasses.fields(instance):
        if is_transient(f):
            continue
        key = field_name(f)
        if key not in data:
            continue
        value = _decode_value(data[key], hints.get(f.name), getattr(instance, f.name), f"{where}.{key}")
        # frozen dataclasses are decoded as well
        object.__setattr__(instance, f.name, value)


def _decode_value(raw: Any, annotation: Any, current: Any, where: str) -> Any:
    if raw is None:
        return None

    cls = annotation_class(annotation)
    if cls is None or cls is object:
        cls = type(current) if current is not None else None

    if cls is not None and dataclasses.is_dataclass(cls):
        return from_data(cls, raw, where)

    if isinstance(current, array.array):
        if not isinstance(raw, list):
            raise ConfigDecodeError(f"{where}: expected an array, got {type(raw).__name__}")
        try:
            return array.array(current.typecode, raw)
        except (TypeError, OverflowError) as e:
            raise ConfigDecodeError(f"{where}: {e}") from e

    if cls is not None and issubclass(cls, (list, tuple)):
        if not isinstance(raw, list):
            raise ConfigDecodeError(f"{where}: expected an array, got {type(raw).__name__}")
        item_ann = element_annotation(annotation)
        sample = current[0] if current else None
        items = [_decode_value(item, item_ann, sample, f"{where}[{i}]") for i, item in enumerate(raw)]
        return tuple(items) if issubclass(cls, tuple) else items

    return _decode_scalar(raw, cls, where)


def _decode_scalar(raw: Any, cls: Optional[type], where: str) -> Any:
    if cls is None:
        return raw
    if issubclass(cls, bool):
        if not isinstance(raw, bool):
            raise ConfigDecodeError(f"{where}: expected a boolean, got {raw!r}")
        return raw
    if issubclass(cls, Enum):
        if isinstance(raw, str) and raw in cls.__members__:
            return cls[raw]
        try:
            return cls(raw)
        except ValueError:
            raise ConfigDecodeError(f"{where}: {raw!r} is not a member of {cls.__name__}") from None
    if issubclass(cls, int):
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ConfigDecodeError(f"{where}: expected an integer, got {raw!r}")
        return raw
    if issubclass(cls, float):
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ConfigDecodeError(f"{where}: expected a number, got {raw!r}")
        return float(raw)
    if issubclass(cls, str):
        if not isinstance(raw, str):
            raise ConfigDecodeError(f"{where}: expected a string, got {raw!r}")
        return raw
    if issubclass(cls, dict):
        if not isinstance(raw, Mapping):
            raise ConfigDecodeError(f"{where}: expected an object, got {raw!r}")
        return dict(raw)
    if issubclass(cls, (set, frozenset)):
        return cls(raw)
    try:
        return cls(raw)
    except (TypeError, ValueError) as e:
        raise ConfigDecodeError(f"{where}: cannot build {cls.__name__} from {raw!r}: {e}") from e
