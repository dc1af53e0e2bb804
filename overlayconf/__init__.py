# overlayconf/__init__.py
"""
overlayconf – Overlay command line, system properties and environment
variables on top of a dataclass configuration.

Import `ConfigProcessor` from `overlayconf.processor` and `setting` from
`overlayconf.properties`; exceptions live in `overlayconf.exceptions`.

Features:
    - Flat dotted/indexed property paths (``server.ip``, ``ips[3]``)
    - Precedence: command line > system property > environment > baseline
    - Lists and arrays grow to fit referenced indices
    - Saving writes the baseline plus explicit edits, never overlay values
    - Embedded ``get``/``set`` command line verbs via ``overlayconf.commands``
    - Optional provenance tracking via ``track_provenance``
"""

from .processor import ConfigProcessor
from .properties import setting
from .sources import SystemProperties, system_properties

__version__ = "0.1.0"

__all__ = ["ConfigProcessor", "SystemProperties", "setting", "system_properties"]
