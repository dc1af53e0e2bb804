"""
overlayconf.properties
----------------------

Property addressing: turns a dataclass object graph into a flat, ordered
namespace of dotted/indexed paths (``server.ip``, ``ips[3]``,
``nested[0].enabled``), each mapped to a handle that reads and writes the
underlying value in place.

Field metadata understood by the traversal (see :func:`setting`):

- ``name``: alias used in paths and in serialized output.
- ``transient``: the field is neither traversed nor serialized.
- ``declared_type``: explicit scalar type (``"char"``, ``"byte"``, ...).

Container storage (lists and ``array.array``) is kept in a slot table keyed
by container path. Element handles look their container up on every access,
so replacing an array's storage during growth is visible to every handle
that refers to it.
"""

import array
import dataclasses
import functools
import logging
import typing
from collections.abc import Mapping
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from .coercion import (
    DeclaredType,
    annotation_class,
    coerce,
    declared_type_for,
    declared_type_for_typecode,
    default_value,
    element_annotation,
    parse_declared_type,
)
from .exceptions import ConfigError, ImmutableContainerError

log = logging.getLogger(__name__)

NAME_KEY = "overlayconf.name"
TRANSIENT_KEY = "overlayconf.transient"
TYPE_KEY = "overlayconf.type"


def setting(default=dataclasses.MISSING, *, default_factory=dataclasses.MISSING,
            name: Optional[str] = None, transient: bool = False,
            declared_type: Optional[str] = None, **kwargs):
    """
    Declare a dataclass field with overlayconf metadata.

    Args:
        default: Default value, as for ``dataclasses.field``.
        default_factory: Default factory, as for ``dataclasses.field``.
        name: Alias used for the property path and the serialized key.
        transient: If True the field is skipped by traversal and serialization.
        declared_type: Explicit scalar type name, e.g. ``"char"`` or ``"byte"``.
        **kwargs: Passed through to ``dataclasses.field``.

    Example:
        >>> @dataclass
        ... class Server:
        ...     ip: str = setting("127.0.0.1", name="ip_address")
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    if name:
        metadata[NAME_KEY] = name
    if transient:
        metadata[TRANSIENT_KEY] = True
    if declared_type:
        metadata[TYPE_KEY] = declared_type
    return dataclasses.field(default=default, default_factory=default_factory, metadata=metadata, **kwargs)


def field_name(f: dataclasses.Field) -> str:
    """Return the (possibly aliased) external name of a dataclass field."""
    return f.metadata.get(NAME_KEY) or f.name


def is_transient(f: dataclasses.Field) -> bool:
    return bool(f.metadata.get(TRANSIENT_KEY))


def is_dataclass_instance(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


@functools.lru_cache(maxsize=None)
def field_hints(cls: type) -> Dict[str, Any]:
    """
    Resolve the type hints of a dataclass, tolerating unresolvable forward references.

    Unresolvable annotations are kept as their raw (string) form, in which
    case classification falls back to the runtime value.
    """
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError):
        log.debug("Could not resolve type hints for %s, using raw annotations", cls.__name__)
        return {f.name: f.type for f in dataclasses.fields(cls)}


class PropertyKind(Enum):
    LEAF = "leaf"
    ARRAY = "array"
    LIST = "list"


class ContainerTable:
    """Slot table mapping a container path to its current backing storage."""

    def __init__(self):
        self._slots: Dict[str, Any] = {}

    def register(self, path: str, container: Any) -> None:
        self._slots[path] = container

    def resolve(self, path: str) -> Any:
        return self._slots[path]

    def replace(self, path: str, container: Any) -> None:
        if path not in self._slots:
            raise KeyError(path)
        self._slots[path] = container

    def __contains__(self, path: object) -> bool:
        return path in self._slots

    def __len__(self) -> int:
        return len(self._slots)


class FieldAccessor:
    """Reads and writes one field of a dataclass instance."""

    def __init__(self, owner: Any, attribute: str):
        self.owner = owner
        self.attribute = attribute
        self.mutable = not type(owner).__dataclass_params__.frozen

    def get(self) -> Any:
        return getattr(self.owner, self.attribute)

    def set(self, value: Any) -> None:
        if not self.mutable:
            raise ConfigError(
                f"Cannot set the immutable field '{self.attribute}' of frozen {type(self.owner).__name__}"
            )
        setattr(self.owner, self.attribute, value)


class ElementAccessor:
    """Reads and writes one slot of a container registered in a ContainerTable."""

    mutable = True

    def __init__(self, table: ContainerTable, container_path: str, index: int):
        self.table = table
        self.container_path = container_path
        self.index = index

    @property
    def owner(self) -> Any:
        return self.table.resolve(self.container_path)

    def get(self) -> Any:
        return self.owner[self.index]

    def set(self, value: Any) -> None:
        self.owner[self.index] = value


_UNSET = object()


class ConfigProperty:
    """
    One addressable value of the configuration graph.

    Attributes:
        path: Full dotted/indexed name, unique within its namespace.
        accessor: FieldAccessor or ElementAccessor for the value's slot.
        declared_type: Scalar type used for coercion. For containers, the
            element type.
        python_type: Concrete class of the value (or of the elements), when known.
        kind: LEAF for values, ARRAY/LIST for container markers.
        container_name: Path of the owning container for elements, else "".
        index: Position within the owning container, or -1.
        overridden: True when the overlay engine set a value that differs
            from the baseline. Cleared by :meth:`set`.
    """

    def __init__(self, path: str, accessor, declared_type: DeclaredType,
                 python_type: Optional[type] = None, kind: PropertyKind = PropertyKind.LEAF,
                 container_name: str = "", index: int = -1):
        self.path = path
        self.accessor = accessor
        self.declared_type = declared_type
        self.python_type = python_type
        self.kind = kind
        self.container_name = container_name
        self.index = index
        self.overridden = False
        self._overlay_value = _UNSET

    @property
    def owner(self) -> Any:
        return self.accessor.owner

    @property
    def is_container(self) -> bool:
        return self.kind is not PropertyKind.LEAF

    @property
    def type_name(self) -> str:
        if self.python_type is not None:
            return self.python_type.__name__
        return str(self.declared_type)

    def is_supported(self) -> bool:
        """True if the overlay engine may set this property."""
        return (not self.is_container
                and self.accessor.mutable
                and self.declared_type is not DeclaredType.UNSUPPORTED)

    def get(self) -> Any:
        return self.accessor.get()

    def set(self, value: Any) -> None:
        """Explicitly set the value. An explicit set is never considered an override."""
        self.accessor.set(value)
        self.clear_override()

    def override(self, value: Any) -> bool:
        """
        Apply an overlay value.

        The property is only changed (and flagged) if the value differs from
        the current one.

        Returns:
            True if the value changed.
        """
        if self.get() == value:
            return False
        self.set(value)
        self.overridden = True
        self._overlay_value = value
        return True

    def clear_override(self) -> None:
        """Drop the override flag so the current value counts as part of the baseline."""
        self.overridden = False
        self._overlay_value = _UNSET

    def mark_overridden(self) -> None:
        """Flag the current value as transient, e.g. for freshly grown container slots."""
        self.overridden = True
        self._overlay_value = self.get()

    def is_overridden(self) -> bool:
        """
        True if the live value is still the one written by the overlay.

        A value the application changed directly on the object (bypassing
        :meth:`set`) no longer counts as overridden.
        """
        return self.overridden and self.get() == self._overlay_value

    def adopt(self, other: "ConfigProperty") -> None:
        """Carry the override state of a handle from a previous namespace."""
        self.overridden = other.overridden
        self._overlay_value = other._overlay_value

    def coerce(self, text: str) -> Any:
        return coerce(text, self.declared_type, self.python_type)

    def default(self) -> Any:
        return default_value(self.declared_type, self.python_type)

    def __eq__(self, other: object) -> bool:
        # override state is not part of equality
        if not isinstance(other, ConfigProperty):
            return NotImplemented
        return (self.is_supported() == other.is_supported()
                and self.is_container == other.is_container
                and self.path == other.path
                and self.get() == other.get())

    def __repr__(self) -> str:
        flag = ", overridden" if self.overridden else ""
        return f"ConfigProperty({self.path!r}, {self.get()!r}, {self.declared_type}{flag})"


class Namespace(Mapping):
    """
    Ordered mapping of path -> ConfigProperty for one object graph.

    Equality compares paths and property values (not override flags), so two
    namespaces are equal when their configurations hold the same data.
    """

    def __init__(self, root: Any):
        self.root = root
        self.containers = ContainerTable()
        self._properties: Dict[str, ConfigProperty] = {}

    def add(self, prop: ConfigProperty) -> None:
        if prop.path in self._properties:
            raise ConfigError(f"Duplicate property path '{prop.path}'")
        self._properties[prop.path] = prop

    def __getitem__(self, path: str) -> ConfigProperty:
        return self._properties[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._properties)

    def __len__(self) -> int:
        return len(self._properties)

    def container_properties(self) -> List[ConfigProperty]:
        return [p for p in self._properties.values() if p.is_container]

    def leaves(self) -> List[ConfigProperty]:
        return [p for p in self._properties.values() if not p.is_container]

    def under(self, path: str) -> List[ConfigProperty]:
        """Return the property at ``path`` and every property nested below it."""
        return [p for p in self._properties.values()
                if p.path == path or p.path.startswith(path + ".") or p.path.startswith(path + "[")]

    def rebuild(self) -> "Namespace":
        """Traverse the root again, keeping the override state of surviving paths."""
        fresh = traverse(self.root)
        for path, prop in fresh.items():
            previous = self._properties.get(path)
            if previous is not None:
                prop.adopt(previous)
        return fresh

    def __repr__(self) -> str:
        return f"Namespace({type(self.root).__name__}, {len(self)} properties)"


def traverse(root: Any) -> Namespace:
    """
    Build the namespace of a dataclass instance.

    Properties are registered depth-first in field order; a container is
    registered before its elements (also when it is empty).

    Args:
        root: The configuration object. It is never modified.

    Returns:
        A new Namespace.

    Raises:
        ConfigError: If root is not a dataclass instance.
        ImmutableContainerError: If a tuple is found where a container is expected.
    """
    if not is_dataclass_instance(root):
        raise ConfigError(f"Cannot bind {type(root).__name__}: configuration objects must be dataclass instances")
    namespace = Namespace(root)
    _visit_fields(namespace, root, "")
    log.debug("Traversed %s: %d properties", type(root).__name__, len(namespace))
    return namespace


def _visit_fields(namespace: Namespace, obj: Any, prefix: str) -> None:
    hints = field_hints(type(obj))
    for f in dataclasses.fields(obj):
        if is_transient(f):
            continue
        name = field_name(f)
        path = f"{prefix}.{name}" if prefix else name
        _visit(namespace, path, FieldAccessor(obj, f.name), getattr(obj, f.name),
               hints.get(f.name), f.metadata.get(TYPE_KEY))


def _visit(namespace: Namespace, path: str, accessor, value: Any, annotation: Any,
           explicit_type: Optional[str], container_name: str = "", index: int = -1) -> None:
    if isinstance(value, tuple):
        raise ImmutableContainerError(path, value)

    if is_dataclass_instance(value):
        _visit_fields(namespace, value, path)
        return

    if isinstance(value, array.array):
        element_type = declared_type_for_typecode(value.typecode)
        prop = ConfigProperty(path, accessor, element_type, None, PropertyKind.ARRAY, container_name, index)
        _visit_container(namespace, prop, value, None, element_type.value)
        return

    if isinstance(value, list):
        element_ann = element_annotation(annotation)
        sample = value[0] if value else None
        if explicit_type:
            element_type = parse_declared_type(explicit_type)
        else:
            element_type = declared_type_for(element_ann, sample)
        element_cls = annotation_class(element_ann) or (type(sample) if sample is not None else None)
        prop = ConfigProperty(path, accessor, element_type, element_cls, PropertyKind.LIST, container_name, index)
        _visit_container(namespace, prop, value, element_ann, explicit_type)
        return

    cls = annotation_class(annotation)
    if value is None and cls is not None and (dataclasses.is_dataclass(cls) or issubclass(cls, (list, tuple))):
        log.debug("Skipping '%s': no %s instance to traverse", path, cls.__name__)
        return

    if explicit_type:
        declared = parse_declared_type(explicit_type)
    else:
        declared = declared_type_for(annotation, value)
    if cls is None or cls is object:
        cls = type(value) if value is not None else None
    namespace.add(ConfigProperty(path, accessor, declared, cls, PropertyKind.LEAF, container_name, index))


def _visit_container(namespace: Namespace, prop: ConfigProperty, container: Any,
                     element_ann: Any, explicit_type: Optional[str]) -> None:
    namespace.add(prop)
    namespace.containers.register(prop.path, container)
    for i, item in enumerate(container):
        _visit(namespace, f"{prop.path}[{i}]", ElementAccessor(namespace.containers, prop.path, i),
               item, element_ann, explicit_type, container_name=prop.path, index=i)
