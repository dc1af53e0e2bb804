# tests/test_commands.py
"""
Tests for the embedded get/set command line verbs.

Covers:
    - Verb detection (case-insensitive, first verb wins) and stripping
    - get/set outcomes through ConfigProcessor.process()
    - Usage errors and configurable not-found exit codes
    - set persists through save(); save logic is skipped when a verb runs
    - commands.handle() printing and exiting
"""

import json

import pytest

from overlayconf import commands
from overlayconf.commands import CommandResult, Outcome
from overlayconf.exceptions import OverlayValueError
from overlayconf.processor import ConfigProcessor
from overlayconf.sources import SystemProperties

from overlay_samples import AppConfig, ListConf


def make(arguments, config=None, **kwargs):
    kwargs.setdefault("save_logic", lambda: None)
    return ConfigProcessor(config if config is not None else AppConfig(), arguments=arguments,
                           system_properties=SystemProperties(), environ={}, **kwargs)


# ---------------------------------------------------------------------------
# Verb parsing
# ---------------------------------------------------------------------------


class TestVerbs:
    """find_verb() and strip_verb()."""

    def test_find_first_verb(self):
        assert commands.find_verb(["x=1", "SET", "port", "1", "get", "name"]) == ("set", 1)

    def test_no_verb(self):
        assert commands.find_verb(["port=1", "debug"]) is None

    def test_strip_get(self):
        assert commands.strip_verb(["a=1", "get", "debug", "b"]) == ["a=1", "b"]

    def test_strip_set(self):
        assert commands.strip_verb(["set", "debug", "true", "c=2"]) == ["c=2"]

    def test_strip_without_operands(self):
        assert commands.strip_verb(["get"]) == []


# ---------------------------------------------------------------------------
# get
# ---------------------------------------------------------------------------


class TestGet:
    """The get verb."""

    def test_get_found(self):
        """get prints the resolved value, including overlay values."""
        processor = make(["port=1", "get", "port"]).process()
        result = processor.command_result
        assert result == CommandResult("get", Outcome.FOUND, "1", 0)

    def test_get_bool_operand_is_not_a_flag(self):
        """The operand of get is not mistaken for a bare boolean flag."""
        processor = make(["get", "debug"]).process()
        assert processor.config.debug is False
        assert processor.command_result.output == "false"

    def test_get_case_insensitive(self):
        processor = make(["GeT", "name"]).process()
        assert processor.command_result.output == "app"

    def test_get_enum_by_name(self):
        processor = make(["get", "mode"]).process()
        assert processor.command_result.output == "FAST"

    def test_get_not_found_default_exit(self):
        """Unknown paths report NOT_FOUND with exit code 0 by default."""
        processor = make(["get", "missing"]).process()
        assert processor.command_result.outcome is Outcome.NOT_FOUND
        assert processor.command_result.output == ""
        assert processor.command_result.exit_code == 0

    def test_get_not_found_configured_exit(self):
        processor = make(["get", "missing"], not_found_exit_code=3).process()
        assert processor.command_result.exit_code == 3

    def test_get_usage(self):
        processor = make(["get"], not_found_exit_code=2).process()
        assert processor.command_result.outcome is Outcome.USAGE
        assert processor.command_result.output == commands.GET_USAGE
        assert processor.command_result.exit_code == 2

    def test_save_logic_skipped(self):
        """The save logic does not run when a verb was handled."""
        calls = []
        make(["get", "port"], save_logic=lambda: calls.append(1)).process()
        assert calls == []

    def test_no_verb(self):
        processor = make(["port=1"]).process()
        assert processor.command_result is None


# ---------------------------------------------------------------------------
# set
# ---------------------------------------------------------------------------


class TestSet:
    """The set verb."""

    def test_set_saves_and_reports_previous(self, tmp_path):
        """set prints the old value and saves the new one."""
        path = tmp_path / "app.json"
        processor = make(["set", "port", "9000"], save_file=path).process()
        assert processor.command_result == CommandResult("set", Outcome.FOUND, "8080", 0)
        assert processor.config.port == 9000
        assert json.loads(path.read_text())["port"] == 9000

    def test_set_keeps_overlay_out(self, tmp_path):
        """Other overlay values are not saved by set."""
        path = tmp_path / "app.json"
        make(["name=overlay", "set", "debug", "true"], save_file=path).process()
        data = json.loads(path.read_text())
        assert data["debug"] is True
        assert data["name"] == "app"

    def test_set_not_found(self):
        processor = make(["set", "missing", "1"], not_found_exit_code=1).process()
        assert processor.command_result.outcome is Outcome.NOT_FOUND
        assert processor.command_result.exit_code == 1

    def test_set_missing_value(self):
        processor = make(["set", "port"]).process()
        assert processor.command_result.outcome is Outcome.USAGE
        assert processor.command_result.output == commands.SET_VALUE_USAGE

    def test_set_missing_path(self):
        processor = make(["set"]).process()
        assert processor.command_result.output == commands.SET_USAGE

    def test_set_bad_value(self):
        """A value that cannot be converted is an error."""
        with pytest.raises(OverlayValueError):
            make(["set", "port", "abc"]).process()

    def test_set_container_is_usage(self, tmp_path):
        """A list path cannot be set from a single text value."""
        path = tmp_path / "app.json"
        conf = ListConf()
        processor = make(["set", "ips", "5"], config=conf, save_file=path).process()
        assert processor.command_result == CommandResult("set", Outcome.USAGE, commands.SET_CONTAINER_USAGE, 0)
        assert conf.ips == [1, 2, 3, 4]
        assert not path.exists()

    def test_set_container_element(self):
        conf = ListConf()
        processor = make(["set", "ips[2]", "5"], config=conf).process()
        assert processor.command_result.output == "3"
        assert conf.ips == [1, 2, 5, 4]


# ---------------------------------------------------------------------------
# handle
# ---------------------------------------------------------------------------


class TestHandle:
    """Printing and exiting for host applications."""

    def test_handle_none(self, capsys):
        commands.handle(None)
        assert capsys.readouterr().out == ""

    def test_handle_prints_and_exits(self, capsys):
        with pytest.raises(SystemExit) as exc:
            commands.handle(CommandResult("get", Outcome.FOUND, "8080", 0))
        assert exc.value.code == 0
        assert capsys.readouterr().out == "8080\n"

    def test_handle_usage_to_stderr(self, capsys):
        with pytest.raises(SystemExit) as exc:
            commands.handle(CommandResult("get", Outcome.USAGE, commands.GET_USAGE, 4))
        assert exc.value.code == 4
        assert commands.GET_USAGE in capsys.readouterr().err

    def test_handle_without_exit(self, capsys):
        commands.handle(CommandResult("get", Outcome.FOUND, "x"), exit=False)
        assert capsys.readouterr().out == "x\n"
