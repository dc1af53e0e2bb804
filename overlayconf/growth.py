"""
overlayconf.growth
------------------

Container growth. Lists and arrays only ever grow: when an overlay source
or a loaded baseline references an index past the end of a container, the
container is extended with default values so the reference lands on a real
slot.

- ``list`` containers are extended in place.
- ``array.array`` containers are reallocated; the new storage is written
  back through the array's parent accessor and swapped into the namespace's
  slot table, so existing element handles follow it.

A loaded baseline may also hold sub-objects (dataclasses, lists, arrays)
where the live configuration has None; :func:`attach_missing` copies them
in so their properties become addressable.
"""

import array
import copy
import dataclasses
import logging
from typing import Any, Dict

from .exceptions import ContainerGrowthError
from .properties import Namespace, PropertyKind, field_name, is_dataclass_instance, is_transient
from .sources import OverlaySources

log = logging.getLogger(__name__)


def grow_to(namespace: Namespace, path: str, size: int) -> bool:
    """
    Grow the container at ``path`` to at least ``size`` elements.

    Args:
        namespace: Namespace holding the container property.
        path: Path of the container.
        size: Requested minimum size.

    Returns:
        True if the container grew. The namespace must then be rebuilt for
        the new elements to become addressable.

    Raises:
        ContainerGrowthError: If ``path`` is not a list or array container.
    """
    prop = namespace[path]
    if not prop.is_container:
        raise ContainerGrowthError(f"'{path}' is not a container")
    container = namespace.containers.resolve(path)
    current = len(container)
    if size <= current:
        return False

    fill = [prop.default() for _ in range(size - current)]
    if prop.kind is PropertyKind.LIST and isinstance(container, list):
        container.extend(fill)
    elif prop.kind is PropertyKind.ARRAY and isinstance(container, array.array):
        grown = array.array(container.typecode, container)
        grown.extend(fill)
        prop.accessor.set(grown)
        namespace.containers.replace(path, grown)
    else:
        raise ContainerGrowthError(f"Unknown container type at '{path}': {type(container).__name__}")

    log.debug("Grew '%s' from %d to %d elements", path, current, size)
    return True


def _mark_grown(namespace: Namespace, grown: Dict[str, int]) -> None:
    """Flag every property inside newly created slots as overridden."""
    for path, old_size in grown.items():
        size = len(namespace.containers.resolve(path))
        for index in range(old_size, size):
            for prop in namespace.under(f"{path}[{index}]"):
                if not prop.is_container:
                    prop.mark_overridden()


def grow_containers(namespace: Namespace, sources: OverlaySources) -> Namespace:
    """
    Grow every container to cover the highest index referenced by the overlay sources.

    Each container path is considered once per call, so repeated calls with
    the same sources are idempotent. Containers created inside newly grown
    elements are processed in the same call.

    Returns:
        The namespace to use from now on (rebuilt if anything grew).
    """
    processed = set()
    while True:
        pending = [p for p in namespace.container_properties() if p.path not in processed]
        if not pending:
            return namespace

        grown: Dict[str, int] = {}
        for prop in pending:
            processed.add(prop.path)
            current = len(namespace.containers.resolve(prop.path))
            if grow_to(namespace, prop.path, sources.max_index(prop.path) + 1):
                grown[prop.path] = current

        if grown:
            namespace = namespace.rebuild()
            _mark_grown(namespace, grown)


def grow_to_match(namespace: Namespace, incoming: Namespace) -> Namespace:
    """
    Grow the containers of ``namespace`` to the sizes found in ``incoming``.

    Used when loading a baseline that holds more elements than the live
    configuration. Never shrinks.

    Returns:
        The namespace to use from now on (rebuilt if anything grew).
    """
    processed = set()
    while True:
        pending = [p for p in namespace.container_properties()
                   if p.path not in processed and p.path in incoming.containers]
        if not pending:
            return namespace

        changed = False
        for prop in pending:
            processed.add(prop.path)
            size = len(incoming.containers.resolve(prop.path))
            changed = grow_to(namespace, prop.path, size) or changed

        if changed:
            namespace = namespace.rebuild()


def extend_baseline(baseline: Namespace, live: Namespace) -> Namespace:
    """
    Grow baseline containers so they can hold live elements set explicitly by the application.

    Elements that exist only because of overlay growth stay out of the
    baseline unless some value inside them is no longer overridden.

    Returns:
        The baseline namespace to use from now on (rebuilt if anything grew).
    """
    processed = set()
    while True:
        pending = [p for p in baseline.container_properties()
                   if p.path not in processed and p.path in live.containers]
        if not pending:
            return baseline

        changed = False
        for prop in pending:
            processed.add(prop.path)
            current = len(baseline.containers.resolve(prop.path))
            live_size = len(live.containers.resolve(prop.path))
            required = current
            for index in range(current, live_size):
                kept = [p for p in live.under(f"{prop.path}[{index}]")
                        if not p.is_container and not p.is_overridden()]
                if kept:
                    required = index + 1
            changed = grow_to(baseline, prop.path, required) or changed

        if changed:
            baseline = baseline.rebuild()


def _is_structure(value: Any) -> bool:
    return is_dataclass_instance(value) or isinstance(value, (list, array.array))


def attach_missing(live: Any, loaded: Any, prefix: str = "") -> int:
    """
    Copy sub-objects of ``loaded`` into ``live`` wherever ``live`` holds None.

    Both objects are walked field by field (and list element by list
    element). Frozen owners and transient fields are left alone. The copies
    are deep, so the live object never shares state with ``loaded``.

    Returns:
        The number of sub-objects attached. When non-zero the live
        namespace must be rebuilt.
    """
    if not (is_dataclass_instance(live) and is_dataclass_instance(loaded)):
        return 0
    frozen = type(live).__dataclass_params__.frozen
    attached = 0
    for f in dataclasses.fields(live):
        if is_transient(f) or not hasattr(loaded, f.name):
            continue
        path = f"{prefix}.{field_name(f)}" if prefix else field_name(f)
        current = getattr(live, f.name)
        incoming = getattr(loaded, f.name)
        if current is None and _is_structure(incoming):
            if frozen:
                log.debug("Not attaching '%s': owner is frozen", path)
                continue
            setattr(live, f.name, copy.deepcopy(incoming))
            log.debug("Attached '%s' from the loaded baseline", path)
            attached += 1
        elif isinstance(current, list) and isinstance(incoming, list):
            for index, (item, loaded_item) in enumerate(zip(current, incoming)):
                if item is None and _is_structure(loaded_item):
                    current[index] = copy.deepcopy(loaded_item)
                    attached += 1
                else:
                    attached += attach_missing(item, loaded_item, f"{path}[{index}]")
        else:
            attached += attach_missing(current, incoming, path)
    return attached
