"""
overlayconf.commands
--------------------

The embedded ``get``/``set`` command line verbs.

An application that passes its command line to a :class:`ConfigProcessor`
gets two interactive verbs for free::

    myapp get server.ip              # prints the resolved value
    myapp set server.ip 10.0.0.1     # prints the old value, saves the new one

Verbs are matched case-insensitively and the first one in the argument list
wins. The functions here never terminate the process: they return a
:class:`CommandResult` and the host decides what to do with it, typically by
calling :func:`handle`.
"""

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Sequence, Tuple

import click

from .codec import to_text

if TYPE_CHECKING:
    from .processor import ConfigProcessor

GET_USAGE = "Must specify property to get. For Example: 'get server.ip'"
SET_USAGE = "Must specify property to set. For Example: 'set server.ip 127.0.0.1'"
SET_VALUE_USAGE = "Must specify property value to set. For Example: 'set server.ip 127.0.0.1'"
SET_CONTAINER_USAGE = "Cannot set a whole list or array, set one element. For Example: 'set ips[0] 127.0.0.1'"

VERBS = ("get", "set")


class Outcome(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    USAGE = "usage"


@dataclass(frozen=True)
class CommandResult:
    """Result of a get/set verb.

    Attributes:
        verb: ``"get"`` or ``"set"``.
        outcome: Whether the property was found, missing, or the verb was misused.
        output: Text to show the user (the value, the old value, or a usage hint).
        exit_code: Suggested process exit code.
    """

    verb: str
    outcome: Outcome
    output: str
    exit_code: int = 0


def find_verb(arguments: Sequence[str]) -> Optional[Tuple[str, int]]:
    """Return ``(verb, index)`` of the first get/set verb in ``arguments``, if any."""
    for index, arg in enumerate(arguments):
        lowered = arg.lower()
        if lowered in VERBS:
            return lowered, index
    return None


def strip_verb(arguments: Sequence[str]) -> list:
    """Return ``arguments`` without the get/set verb and its operands."""
    found = find_verb(arguments)
    if found is None:
        return list(arguments)
    verb, index = found
    operands = 1 if verb == "get" else 2
    return list(arguments[:index]) + list(arguments[index + 1 + operands:])


def get_property(processor: "ConfigProcessor", path: str, not_found_exit_code: int = 0) -> CommandResult:
    """Look up the resolved value of ``path``."""
    try:
        value = processor.get(path)
    except KeyError:
        return CommandResult("get", Outcome.NOT_FOUND, "", not_found_exit_code)
    return CommandResult("get", Outcome.FOUND, to_text(value))


def set_property(processor: "ConfigProcessor", path: str, text: str, not_found_exit_code: int = 0) -> CommandResult:
    """
    Set ``path`` from text, save the configuration and report the previous value.

    Only single values can be set; a list or array path is a usage error.

    Raises:
        OverlayValueError: If ``text`` cannot be converted to the property's type.
    """
    try:
        prop = processor.property(path)
    except KeyError:
        return CommandResult("set", Outcome.NOT_FOUND, "", not_found_exit_code)
    if prop.is_container:
        return CommandResult("set", Outcome.USAGE, SET_CONTAINER_USAGE, not_found_exit_code)
    previous = processor.set(path, prop.coerce(text))
    processor.save()
    return CommandResult("set", Outcome.FOUND, to_text(previous))


def run(processor: "ConfigProcessor", arguments: Sequence[str], not_found_exit_code: int = 0) -> Optional[CommandResult]:
    """
    Execute the get/set verb found in ``arguments``.

    Returns:
        The CommandResult, or None if no verb is present.
    """
    found = find_verb(arguments)
    if found is None:
        return None
    verb, index = found

    if index + 1 >= len(arguments):
        return CommandResult(verb, Outcome.USAGE, GET_USAGE if verb == "get" else SET_USAGE, not_found_exit_code)
    path = arguments[index + 1]

    if verb == "get":
        return get_property(processor, path, not_found_exit_code)

    if index + 2 >= len(arguments):
        return CommandResult(verb, Outcome.USAGE, SET_VALUE_USAGE, not_found_exit_code)
    return set_property(processor, path, arguments[index + 2], not_found_exit_code)


def handle(result: Optional[CommandResult], exit: bool = True) -> None:
    """
    Print a CommandResult and, by default, terminate the process with its exit code.

    Does nothing if ``result`` is None.
    """
    if result is None:
        return
    click.echo(result.output, err=result.outcome is Outcome.USAGE)
    if exit:
        sys.exit(result.exit_code)
