"""
overlayconf.overlay
-------------------

Overlay resolution. Every leaf property of the live namespace is checked
against the overlay sources, in this order, and the first match wins:

1. command line ``path=value``
2. command line bare ``path`` (boolean properties only, sets True)
3. system property ``path`` (exact, lower, upper)
4. environment variable ``prefix + path`` (exact, lower, upper)

A property is only changed, and flagged as overridden, when the overlay
value differs from its current value.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from .coercion import DeclaredType
from .properties import ConfigProperty, Namespace
from .provenance import ProvenanceStore
from .sources import OverlaySources

log = logging.getLogger(__name__)


def resolve(namespace: Namespace, sources: OverlaySources,
            provenance: Optional[ProvenanceStore] = None,
            arguments: Optional[Sequence[str]] = None) -> List[str]:
    """
    Apply the overlay sources to every overlay-eligible property of ``namespace``.

    Args:
        namespace: Live namespace; properties are visited in namespace order.
        sources: The command line, system properties and environment.
        provenance: If given, records the source of every changed value.
        arguments: The full command line to clean, if it differs from the
            arguments searched for overrides.

    Returns:
        The command line arguments that were not consumed as property
        overrides, in their original order.

    Raises:
        OverlayValueError: If an overlay value cannot be converted to the
            property's type.
    """
    remaining = list(sources.arguments if arguments is None else arguments)
    for path, prop in namespace.items():
        if prop.is_container:
            continue
        if not prop.is_supported():
            log.error("%s (%s) overloading is not supported. Ignoring", path, prop.type_name)
            continue

        match = _resolve_property(prop, sources, remaining)
        if match is None:
            continue
        source, changed = match
        if changed:
            log.debug("Overrode '%s' = %r from %s", path, prop.get(), source)
            if provenance is not None:
                provenance.record(path, prop.get(), source)
    return remaining


def _resolve_property(prop: ConfigProperty, sources: OverlaySources,
                      remaining: List[str]) -> Optional[Tuple[str, bool]]:
    found = sources.cli_value(prop.path)
    if found is not None:
        arg, text = found
        _consume(remaining, arg)
        return f"cli:{arg}", prop.override(prop.coerce(text))

    if prop.declared_type is DeclaredType.BOOL:
        arg = sources.cli_flag(prop.path)
        if arg is not None:
            _consume(remaining, arg)
            return f"cli:{arg}", prop.override(True)

    found = sources.system_property(prop.path)
    if found is not None:
        name, text = found
        return f"sysprop:{name}", prop.override(prop.coerce(text))

    found = sources.environment(prop.path)
    if found is not None:
        name, text = found
        return f"env:{name}", prop.override(prop.coerce(text))

    return None


def _consume(remaining: List[str], arg: str) -> None:
    if arg in remaining:
        remaining.remove(arg)
