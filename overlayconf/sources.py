"""
overlayconf.sources
-------------------

The three overlay sources, in precedence order:

1. command line arguments (``path=value`` and bare boolean ``path`` flags),
2. system properties (a process-wide registry, see :data:`system_properties`),
3. environment variables, optionally namespaced with a prefix
   (``CONFIG__path`` for prefix ``CONFIG__``).

System properties and environment variables are probed with the exact
property path first, then its lowercase and uppercase variants.

``.env`` files (environment) and ``KEY=VALUE`` properties files (system
properties) are read with python-dotenv.
"""

import logging
import os
import threading
from collections.abc import MutableMapping
from typing import Iterable, Iterator, List, Mapping, Optional, Tuple

from dotenv import dotenv_values, load_dotenv

from .coercion import DeclaredType
from .exceptions import OverlayValueError

log = logging.getLogger(__name__)


class SystemProperties(MutableMapping):
    """
    Thread-safe registry of named string properties.

    Python has no JVM-style system properties; this registry fills that role
    for the overlay engine. A single process-wide instance is available as
    :data:`system_properties`.
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._lock = threading.RLock()
        self._values = dict(initial or {})

    def __getitem__(self, name: str) -> str:
        with self._lock:
            return self._values[name]

    def __setitem__(self, name: str, value: str) -> None:
        with self._lock:
            self._values[name] = str(value)

    def __delitem__(self, name: str) -> None:
        with self._lock:
            del self._values[name]

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._values))

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def get_property(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.get(name, default)

    def set_property(self, name: str, value: str) -> Optional[str]:
        """Set a property and return its previous value."""
        with self._lock:
            previous = self._values.get(name)
            self[name] = value
            return previous

    def clear_property(self, name: str) -> Optional[str]:
        """Remove a property and return its previous value."""
        with self._lock:
            return self._values.pop(name, None)

    def load_file(self, path: str, override: bool = True) -> int:
        """
        Load ``KEY=VALUE`` lines (dotenv syntax) into the registry.

        Args:
            path: Properties file to read.
            override: If False, existing properties are kept.

        Returns:
            Number of properties set.
        """
        count = 0
        with self._lock:
            for name, value in dotenv_values(path).items():
                if value is None or (not override and name in self._values):
                    continue
                self._values[name] = value
                count += 1
        log.debug("Loaded %d system properties from %s", count, path)
        return count


system_properties = SystemProperties()


def load_dotenv_file(path: str, environ: MutableMapping) -> int:
    """
    Load a ``.env`` file into an environment mapping without overriding existing entries.

    Returns:
        Number of variables added.
    """
    if not os.path.exists(path):
        log.debug("No .env file at %s", path)
        return 0
    if environ is os.environ:
        before = len(os.environ)
        load_dotenv(dotenv_path=path, override=False)
        added = len(os.environ) - before
    else:
        added = 0
        for name, value in dotenv_values(path).items():
            if value is not None and name not in environ:
                environ[name] = value
                added += 1
    log.debug("Loaded %d variables from .env file %s", added, path)
    return added


def name_variants(name: str) -> List[str]:
    """Return ``[name, name.lower(), name.upper()]`` without duplicates, in that order."""
    variants = []
    for candidate in (name, name.lower(), name.upper()):
        if candidate not in variants:
            variants.append(candidate)
    return variants


def _probe(mapping: Mapping[str, str], prefix: str, path: str) -> Optional[Tuple[str, str]]:
    for variant in name_variants(path):
        key = prefix + variant
        value = mapping.get(key)
        if value is None:
            continue
        value = value.strip()
        if value:
            return key, value
    return None


def parse_index(name: str, start: int) -> int:
    """
    Parse the container index that begins at ``name[start]`` and ends at the next ``]``.

    Raises:
        OverlayValueError: If the index is missing or not a non-negative integer.
    """
    end = name.find("]", start)
    digits = name[start:end] if end >= 0 else ""
    if not digits.isdigit():
        raise OverlayValueError(name, DeclaredType.INT, "malformed container index")
    return int(digits)


class OverlaySources:
    """
    Read-only view over the command line, the system properties and the environment.

    Args:
        arguments: Command line arguments.
        properties: System property mapping; defaults to the process-wide registry.
        environ: Environment mapping; defaults to ``os.environ``.
        env_prefix: Prefix prepended to property paths for environment lookups.
    """

    def __init__(self, arguments: Iterable[str] = (), properties: Optional[Mapping[str, str]] = None,
                 environ: Optional[Mapping[str, str]] = None, env_prefix: str = ""):
        self.arguments = list(arguments)
        self.properties = properties if properties is not None else system_properties
        self.environ = environ if environ is not None else os.environ
        self.env_prefix = env_prefix or ""

    def cli_value(self, path: str) -> Optional[Tuple[str, str]]:
        """Return ``(argument, value)`` for the first ``path=value`` argument."""
        marker = path + "="
        for arg in self.arguments:
            if arg.startswith(marker):
                return arg, arg[len(marker):].strip()
        return None

    def cli_flag(self, path: str) -> Optional[str]:
        """Return the first bare ``path`` argument, if present."""
        for arg in self.arguments:
            if arg == path:
                return arg
        return None

    def system_property(self, path: str) -> Optional[Tuple[str, str]]:
        return _probe(self.properties, "", path)

    def environment(self, path: str) -> Optional[Tuple[str, str]]:
        return _probe(self.environ, self.env_prefix, path)

    def max_index(self, container_path: str) -> int:
        """
        Return the highest index referenced for a container by any source, or -1.

        ``ips[7]=1`` on the command line, a ``ips[3]`` system property or a
        ``PREFIX_ips[5]`` environment variable all reference the ``ips``
        container. Empty system property and environment values are ignored.
        """
        highest = -1
        marker = container_path + "["
        for arg in self.arguments:
            if arg.startswith(marker):
                highest = max(highest, parse_index(arg, len(marker)))
        for prefix, mapping in (("", self.properties), (self.env_prefix, self.environ)):
            markers = [prefix + variant + "[" for variant in name_variants(container_path)]
            for key in list(mapping):
                for candidate in markers:
                    if key.startswith(candidate):
                        value = mapping.get(key)
                        if value is not None and value.strip():
                            highest = max(highest, parse_index(key, len(candidate)))
                        break
        return highest
