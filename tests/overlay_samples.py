# tests/overlay_samples.py
"""
Sample configuration dataclasses shared by the test modules (and importable
by the CLI tests as ``overlay_samples:AppConfig``).
"""

import array
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from overlayconf.properties import setting


class Mode(Enum):
    FAST = "fast"
    SAFE = "safe"


@dataclass
class NestedConf:
    ice_cream: bool = setting(False, name="iceCream")
    potatoes: bool = True


@dataclass
class Conf:
    ip: str = setting("127.0.0.1", name="ip_address")
    server: bool = False
    client: bool = False
    nested: List[NestedConf] = field(default_factory=lambda: [NestedConf()])


@dataclass
class ListConf:
    ips: List[int] = field(default_factory=lambda: [1, 2, 3, 4])


@dataclass
class ArrayConf:
    ips: array.array = field(default_factory=lambda: array.array("i", [1, 2, 3, 4]))


@dataclass
class CharListConf:
    ips: List[str] = setting(default_factory=lambda: ["1", "2", "3", "4"], declared_type="char")


@dataclass
class Limits:
    retries: int = 3
    ratio: float = 0.5
    level: int = setting(1, declared_type="byte")


@dataclass
class AppConfig:
    name: str = "app"
    port: int = 8080
    debug: bool = False
    mode: Mode = Mode.FAST
    limits: Limits = field(default_factory=Limits)
    tags: List[str] = field(default_factory=list)
    token: str = setting("secret", transient=True)


@dataclass
class MatrixConf:
    matrix: List[List[int]] = field(default_factory=lambda: [[1, 2], [3]])


@dataclass(frozen=True)
class Endpoint:
    host: str = "localhost"
    port: int = 80


@dataclass
class FrozenConf:
    endpoint: Endpoint = field(default_factory=Endpoint)
    name: str = "svc"


@dataclass
class TupleConf:
    hosts: tuple = ("a", "b")


@dataclass
class DictConf:
    labels: Dict[str, str] = field(default_factory=dict)
    name: str = "svc"


@dataclass
class PathConf:
    root: Path = field(default_factory=lambda: Path("/srv"))
    parent: Optional[NestedConf] = None
    mirrors: Optional[List[str]] = None


@dataclass
class ClashConf:
    a: int = setting(1, name="same")
    b: int = setting(2, name="same")
