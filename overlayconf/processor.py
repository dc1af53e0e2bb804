"""
overlayconf.processor
---------------------

Binds a dataclass configuration object to its baseline (default object,
JSON/TOML file, JSON string) and to the overlay sources (command line,
system properties, environment variables)::

    overlay:   command line  >  system property  >  environment variable
    baseline:  default object  <  file  <  string

The configuration object passed in is modified in place. A separate copy of
the baseline is kept so that saving writes the baseline plus any edits made
by the application, but never values that only came from the overlay.

Example:
    >>> @dataclass
    ... class Conf:
    ...     ip: str = setting("127.0.0.1", name="ip_address")
    ...     server: bool = False
    >>> conf = Conf()
    >>> processor = ConfigProcessor(conf, arguments=["ip_address=1.2.3.4", "server"]).process()
    >>> conf.ip, conf.server
    ('1.2.3.4', True)
    >>> processor.original_json()
    '{"ip_address":"127.0.0.1","server":false}'

Environment variable names may clash with standard ones (``PATH``); an
``env_prefix`` such as ``"CONFIG__"`` namespaces them, so the ``path``
property is read from ``CONFIG__path``.
"""

import array
import copy
import functools
import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Generic, Iterable, List, Mapping, MutableMapping, Optional, TypeVar, Union

from . import codec, commands
from .exceptions import ConfigDecodeError, ConfigError
from .growth import attach_missing, extend_baseline, grow_containers, grow_to_match
from .overlay import resolve
from .properties import ConfigProperty, Namespace, PropertyKind, traverse
from .provenance import ProvenanceEntry, ProvenanceStore
from .sources import OverlaySources, load_dotenv_file
from .utils import expand_path, read_text, write_text

log = logging.getLogger(__name__)

T = TypeVar("T")


def _synchronized(method):
    """Run the method under the instance's re-entrant lock."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class ConfigProcessor(Generic[T]):
    """
    Overlay engine for one configuration object.

    Args:
        config: Dataclass instance to bind. It is modified in place.
        env_prefix: Prefix for environment variable names.
        arguments: Command line arguments (``path=value``, bare boolean
            ``path``, ``get path``, ``set path value``).
        save_file: File written by :meth:`save`; defaults to the loaded file.
        system_properties: System property mapping; defaults to
            ``overlayconf.sources.system_properties``.
        environ: Environment mapping; defaults to ``os.environ``.
        save_logic: Callable run at the end of :meth:`process`; defaults to
            :meth:`save_pretty`.
        track_provenance: Record the source of every value written.
        not_found_exit_code: Exit code suggested for get/set on an unknown
            property or with missing operands.
        dotenv_path: ``.env`` file loaded into ``environ`` (existing
            variables win).

    Attributes:
        arguments: The command line arguments left over after the last
            :meth:`process`, i.e. without the ones consumed as overrides.
        command_result: Result of the get/set verb handled by the last
            :meth:`process`, or None.
        provenance: ProvenanceStore, when tracking is enabled.
    """

    def __init__(self, config: T, *,
                 env_prefix: str = "",
                 arguments: Iterable[str] = (),
                 save_file: Optional[Union[str, os.PathLike]] = None,
                 system_properties: Optional[Mapping[str, str]] = None,
                 environ: Optional[MutableMapping[str, str]] = None,
                 save_logic: Optional[Callable[[], Any]] = None,
                 track_provenance: bool = False,
                 not_found_exit_code: int = 0,
                 dotenv_path: Optional[str] = None):
        self._lock = threading.RLock()
        self._config = config
        self._config_type = type(config)
        self._env_prefix = env_prefix or ""
        self._command_line: List[str] = list(arguments)
        self._save_file = expand_path(save_file) if save_file else None
        self._config_file: Optional[Path] = None
        self._config_string: Optional[str] = None
        self._system_properties = system_properties
        self._environ = environ if environ is not None else os.environ
        self._save_logic = save_logic or self.save_pretty
        self.not_found_exit_code = not_found_exit_code
        self.provenance: Optional[ProvenanceStore] = ProvenanceStore() if track_provenance else None

        self.arguments: List[str] = list(self._command_line)
        self.command_result: Optional[commands.CommandResult] = None

        if dotenv_path:
            load_dotenv_file(dotenv_path, self._environ)

        # the live namespace always points into the caller's object
        self._namespace: Namespace = traverse(config)
        self._baseline: Namespace = traverse(copy.deepcopy(config))

    # --- Fluent configuration ---

    @_synchronized
    def with_env_prefix(self, env_prefix: str) -> "ConfigProcessor[T]":
        """Set the prefix used for environment variable names."""
        self._env_prefix = env_prefix or ""
        return self

    @_synchronized
    def with_arguments(self, arguments: Iterable[str]) -> "ConfigProcessor[T]":
        """Set the command line arguments used by the next :meth:`process`."""
        self._command_line = list(arguments)
        self.arguments = list(self._command_line)
        return self

    @_synchronized
    def with_save_file(self, save_file: Optional[Union[str, os.PathLike]]) -> "ConfigProcessor[T]":
        """Set the file written by :meth:`save`, when it differs from the loaded one."""
        self._save_file = expand_path(save_file) if save_file else None
        return self

    @_synchronized
    def with_save_logic(self, save_logic: Callable[[], Any]) -> "ConfigProcessor[T]":
        """Replace what :meth:`process` runs to persist the configuration."""
        self._save_logic = save_logic
        return self

    # --- Accessors ---

    @property
    def config(self) -> T:
        """The live configuration object (baseline plus overrides)."""
        return self._config

    @property
    @_synchronized
    def namespace(self) -> Namespace:
        return self._namespace

    @property
    def config_file(self) -> Optional[Path]:
        return self._config_file

    @_synchronized
    def property(self, path: str) -> ConfigProperty:
        """Return the live property at ``path``; raises KeyError if unknown."""
        return self._namespace[path]

    @_synchronized
    def paths(self) -> List[str]:
        """All addressable leaf paths, in traversal order."""
        return [p.path for p in self._namespace.leaves()]

    @_synchronized
    def overridden_paths(self) -> List[str]:
        """Paths whose live value currently comes from the overlay."""
        return [p.path for p in self._namespace.leaves() if p.is_overridden()]

    @_synchronized
    def get(self, path: str) -> Any:
        """Return the live value at ``path``; raises KeyError if unknown."""
        return self._namespace[path].get()

    @_synchronized
    def set(self, path: str, value: Any) -> Any:
        """
        Explicitly set the value at ``path``.

        An explicit set is a permanent edit: the property is no longer
        considered overridden and the value is included in saves.

        Setting a container path (``ips``) replaces the whole list or array,
        in the live object and in the saved baseline, and re-addresses its
        elements.

        Returns:
            The previous value.

        Raises:
            KeyError: If ``path`` is unknown.
            ConfigError: If a container is given something other than a
                list (or an ``array.array`` for arrays).
        """
        prop = self._namespace[path]
        if prop.is_container:
            return self._set_container(prop, value)
        previous = prop.get()
        prop.set(value)
        if self.provenance is not None:
            self.provenance.record(path, value, "set")
        return previous

    def _set_container(self, prop: ConfigProperty, value: Any) -> Any:
        expected = array.array if prop.kind is PropertyKind.ARRAY else list
        if not isinstance(value, expected):
            raise ConfigError(f"'{prop.path}' holds a {expected.__name__}, got {type(value).__name__}")
        previous = prop.get()
        prop.set(value)
        self._namespace = self._namespace.rebuild()
        replaced = [p for p in self._namespace.under(prop.path) if not p.is_container]
        for element in replaced:
            element.clear_override()

        stored = self._baseline.get(prop.path)
        if stored is not None and stored.accessor.mutable:
            stored.set(copy.deepcopy(value))
            self._baseline = self._baseline.rebuild()

        if self.provenance is not None:
            self.provenance.discard(prop.path)
            for element in replaced:
                self.provenance.record(element.path, element.get(), "set")
        log.debug("Replaced '%s' (%d elements)", prop.path, len(value))
        return previous

    @_synchronized
    def origin(self, path: str) -> Optional[ProvenanceEntry]:
        """Return where the value at ``path`` came from, if provenance is tracked."""
        if self.provenance is None:
            return None
        return self.provenance.get(path)

    # --- Loading ---

    @_synchronized
    def load(self, text: str) -> bool:
        """
        Load the baseline from a JSON string.

        Returns:
            False if the string is blank or cannot be decoded; the previous
            baseline then stays in effect.
        """
        loaded = self._decode(text, codec.FORMAT_JSON, "string")
        if loaded is None:
            return False
        self._config_string = text
        self._apply_baseline(loaded, "string")
        return True

    @_synchronized
    def load_file(self, path: Union[str, os.PathLike]) -> bool:
        """
        Load the baseline from a JSON (or ``.toml``) file.

        Returns:
            False if the file is missing, unreadable, empty or cannot be
            decoded; the previous baseline then stays in effect.
        """
        path = expand_path(path)
        text = read_text(path)
        if text is None:
            return False
        loaded = self._decode(text, codec.format_for(path), f"file:{path}")
        if loaded is None:
            return False
        self._config_file = path
        self._apply_baseline(loaded, f"file:{path}")
        return True

    @_synchronized
    def load_and_process(self, text: str) -> "ConfigProcessor[T]":
        """Load a JSON string baseline and, if it loaded, resolve the overlay again."""
        if not self.load(text):
            return self
        return self._post_process()

    @_synchronized
    def load_file_and_process(self, path: Union[str, os.PathLike]) -> "ConfigProcessor[T]":
        """Load a file baseline and, if it loaded, resolve the overlay again."""
        if not self.load_file(path):
            return self
        return self._post_process()

    def _decode(self, text: str, fmt: str, source: str) -> Optional[T]:
        if not text or not text.strip():
            return None
        try:
            return codec.loads(self._config_type, text, fmt)
        except ConfigDecodeError as e:
            log.warning("Warning: Could not load configuration from %s: %s", source, e)
            return None

    def _apply_baseline(self, loaded: T, source: str) -> None:
        incoming = traverse(loaded)
        if attach_missing(self._config, loaded):
            self._namespace = self._namespace.rebuild()
        self._namespace = grow_to_match(self._namespace, incoming)
        for path, src in incoming.items():
            target = self._namespace.get(path)
            if src.is_container or target is None or target.is_container:
                continue
            if not target.accessor.mutable:
                log.debug("Not loading '%s': field is immutable", path)
                continue
            target.set(src.get())
            if self.provenance is not None:
                self.provenance.record(path, target.get(), source)
        self._baseline = traverse(copy.deepcopy(loaded))
        log.debug("Loaded baseline from %s (%d properties)", source, len(incoming))

    # --- Processing ---

    @_synchronized
    def process(self) -> "ConfigProcessor[T]":
        """
        Re-load the baseline and resolve the overlay.

        The loaded file (if any) is read first, then the loaded string (if
        any) is applied on top of it. Then containers are grown, overrides
        applied, a get/set verb on the command line is handled, and finally
        the save logic runs (skipped when a verb was handled).

        Raises:
            OverlayValueError: If an overlay value cannot be converted.
        """
        if self._config_file is not None:
            self.load_file(self._config_file)
        if self._config_string is not None:
            self.load(self._config_string)
        return self._post_process()

    def _post_process(self) -> "ConfigProcessor[T]":
        sources = OverlaySources(
            commands.strip_verb(self._command_line),
            properties=self._system_properties,
            environ=self._environ,
            env_prefix=self._env_prefix,
        )
        self._namespace = grow_containers(self._namespace, sources)
        self.arguments = resolve(self._namespace, sources, self.provenance, self._command_line)

        self.command_result = commands.run(self, self._command_line, self.not_found_exit_code)
        if self.command_result is None:
            self._save_logic()
        return self

    # --- Output ---

    def _refresh_baseline(self) -> Any:
        self._baseline = extend_baseline(self._baseline, self._namespace)
        for path, prop in self._baseline.items():
            if prop.is_container or not prop.accessor.mutable:
                continue
            live = self._namespace.get(path)
            if live is not None and not live.is_overridden():
                prop.set(live.get())
        return self._baseline.root

    @_synchronized
    def original_json(self, pretty: bool = False) -> str:
        """JSON of the baseline plus application edits, without overlay values."""
        return codec.dumps(self._refresh_baseline(), pretty=pretty)

    @_synchronized
    def json(self, pretty: bool = False) -> str:
        """JSON of the live configuration, including overlay values."""
        return codec.dumps(self._config, pretty=pretty)

    @_synchronized
    def save(self) -> str:
        """
        Write :meth:`original_json` to the save file, or else to the loaded file.

        Nothing is written when neither is known. ``.toml`` targets are
        written as TOML.

        Returns:
            The text (written or not).
        """
        return self._save(pretty=False)

    @_synchronized
    def save_pretty(self) -> str:
        """Same as :meth:`save`, with indented JSON."""
        return self._save(pretty=True)

    def _save(self, pretty: bool) -> str:
        target = self._save_file or self._config_file
        if target is not None and codec.format_for(target) == codec.FORMAT_TOML:
            text = codec.dumps(self._refresh_baseline(), fmt=codec.FORMAT_TOML)
        else:
            text = self.original_json(pretty=pretty)
        if target is not None:
            write_text(target, text)
        return text

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConfigProcessor):
            return NotImplemented
        return self._namespace == other._namespace

    __hash__ = None

    def __str__(self) -> str:
        return self.json()

    def __repr__(self) -> str:
        return f"ConfigProcessor({self._config_type.__name__}, {len(self._namespace)} properties)"
