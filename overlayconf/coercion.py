"""
overlayconf.coercion
--------------------

Conversion of textual overlay values (command line, system properties,
environment variables) into the declared type of the property they target,
plus the zero value used to fill newly grown container slots.
"""

import dataclasses
import types
import typing
from enum import Enum
from typing import Any, Optional

from .exceptions import OverlayValueError


class DeclaredType(Enum):
    """Scalar classification of a property, used for coercion and defaults."""

    BOOL = "bool"
    BYTE = "byte"
    SHORT = "short"
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    CHAR = "char"
    STRING = "string"
    ENUM = "enum"
    OBJECT = "object"
    UNSUPPORTED = "unsupported"

    def __str__(self) -> str:
        return self.value


INTEGER_TYPES = frozenset({DeclaredType.BYTE, DeclaredType.SHORT, DeclaredType.INT, DeclaredType.LONG})
FLOAT_TYPES = frozenset({DeclaredType.FLOAT, DeclaredType.DOUBLE})

# INT keeps Python's arbitrary precision; the fixed-width types are range checked.
_INTEGER_RANGES = {
    DeclaredType.BYTE: (-(2 ** 7), 2 ** 7 - 1),
    DeclaredType.SHORT: (-(2 ** 15), 2 ** 15 - 1),
    DeclaredType.LONG: (-(2 ** 63), 2 ** 63 - 1),
}

_TRUE_WORDS = frozenset({"true", "yes", "on", "1"})
_FALSE_WORDS = frozenset({"false", "no", "off", "0"})

_TYPECODES = {
    "b": DeclaredType.BYTE,
    "h": DeclaredType.SHORT,
    "B": DeclaredType.INT,
    "H": DeclaredType.INT,
    "i": DeclaredType.INT,
    "I": DeclaredType.INT,
    "l": DeclaredType.INT,
    "L": DeclaredType.INT,
    "q": DeclaredType.INT,
    "Q": DeclaredType.INT,
    "f": DeclaredType.FLOAT,
    "d": DeclaredType.DOUBLE,
    "u": DeclaredType.CHAR,
    "w": DeclaredType.CHAR,
}


def unwrap_optional(annotation: Any) -> Any:
    """
    Strip ``Optional[...]`` (or ``X | None``) from an annotation.

    Any other union is returned unchanged.
    """
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def annotation_class(annotation: Any) -> Optional[type]:
    """Return the concrete class an annotation names, or None if it is not a plain class."""
    annotation = unwrap_optional(annotation)
    origin = typing.get_origin(annotation)
    if origin is not None:
        return origin if isinstance(origin, type) else None
    return annotation if isinstance(annotation, type) else None


def element_annotation(annotation: Any) -> Any:
    """Return the element annotation of ``list[X]`` style annotations, or None."""
    args = typing.get_args(unwrap_optional(annotation))
    return args[0] if args else None


def _classify(cls: type) -> DeclaredType:
    if issubclass(cls, bool):
        return DeclaredType.BOOL
    if issubclass(cls, Enum):
        return DeclaredType.ENUM
    if issubclass(cls, int):
        return DeclaredType.INT
    if issubclass(cls, float):
        return DeclaredType.DOUBLE
    if issubclass(cls, str):
        return DeclaredType.STRING
    if issubclass(cls, (dict, set, frozenset)):
        return DeclaredType.UNSUPPORTED
    return DeclaredType.OBJECT


def declared_type_for(annotation: Any = None, value: Any = None) -> DeclaredType:
    """
    Classify a property from its annotation, falling back to its runtime value.

    Args:
        annotation: The (resolved) type annotation of the field, if any.
        value: The current value held by the field.

    Returns:
        The DeclaredType of the property. Properties with neither a usable
        annotation nor a value are treated as strings.
    """
    cls = annotation_class(annotation)
    if cls is not None and cls is not object:
        return _classify(cls)
    if value is not None:
        return _classify(type(value))
    return DeclaredType.STRING


def declared_type_for_typecode(typecode: str) -> DeclaredType:
    """Map an ``array.array`` typecode to its declared type."""
    try:
        return _TYPECODES[typecode]
    except KeyError:
        raise ValueError(f"Unsupported array typecode: {typecode!r}") from None


def parse_declared_type(name: str) -> DeclaredType:
    """Parse an explicit ``type`` given in field metadata (e.g. ``"char"``)."""
    try:
        return DeclaredType(name.lower())
    except ValueError:
        raise ValueError(f"Unknown declared type {name!r}") from None


def _parse_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    raise OverlayValueError(text, DeclaredType.BOOL, "expected true/false")


def _parse_integer(text: str, declared_type: DeclaredType) -> int:
    try:
        number = int(text, 10)
    except ValueError as e:
        raise OverlayValueError(text, declared_type, str(e)) from e
    bounds = _INTEGER_RANGES.get(declared_type)
    if bounds and not bounds[0] <= number <= bounds[1]:
        raise OverlayValueError(text, declared_type, f"out of range {bounds[0]}..{bounds[1]}")
    return number


def _parse_enum(text: str, enum_cls: type) -> Enum:
    try:
        return enum_cls[text]
    except KeyError:
        pass
    for member in enum_cls:
        if str(member.value) == text:
            return member
    raise OverlayValueError(text, DeclaredType.ENUM, f"not a member of {enum_cls.__name__}")


def coerce(text: str, declared_type: DeclaredType, python_type: Optional[type] = None) -> Any:
    """
    Convert override text into a value of the declared type.

    Args:
        text: The raw override value.
        declared_type: The scalar type of the target property.
        python_type: The concrete class, required for ENUM and OBJECT.

    Returns:
        The converted value.

    Raises:
        OverlayValueError: If the text cannot be converted. Bad overlay input
            is never ignored.
    """
    if declared_type is DeclaredType.STRING:
        return text
    if declared_type is DeclaredType.BOOL:
        return _parse_bool(text)
    if declared_type in INTEGER_TYPES:
        return _parse_integer(text, declared_type)
    if declared_type in FLOAT_TYPES:
        try:
            return float(text)
        except ValueError as e:
            raise OverlayValueError(text, declared_type, str(e)) from e
    if declared_type is DeclaredType.CHAR:
        if not text:
            raise OverlayValueError(text, declared_type, "empty text")
        return text[0]
    if declared_type is DeclaredType.ENUM and python_type is not None:
        return _parse_enum(text, python_type)
    if declared_type is DeclaredType.OBJECT and python_type is not None:
        try:
            return python_type(text)
        except (TypeError, ValueError) as e:
            raise OverlayValueError(text, declared_type, str(e)) from e
    raise OverlayValueError(text, declared_type, "type cannot be set from text")


def default_value(declared_type: DeclaredType, python_type: Optional[type] = None) -> Any:
    """
    Return the zero value of a declared type, used to populate grown slots.

    Dataclass and other object element types are default-constructed.
    """
    if declared_type is DeclaredType.BOOL:
        return False
    if declared_type in INTEGER_TYPES:
        return 0
    if declared_type in FLOAT_TYPES:
        return 0.0
    if declared_type is DeclaredType.CHAR:
        return "\0"
    if declared_type is DeclaredType.STRING:
        return ""
    if declared_type is DeclaredType.ENUM and python_type is not None:
        return next(iter(python_type))
    if python_type is not None and (dataclasses.is_dataclass(python_type) or declared_type is DeclaredType.OBJECT):
        return python_type()
    return None
