"""Tests for the command-line entry point."""

from pathlib import Path
from unittest.mock import patch

import pytest

from buildrun import main as cli
from buildrun.errors import SKIPPED_NOT_WATCHING


@pytest.fixture(autouse=True)
def keep_test_logging():
    """main() reconfigures the root logger, which would drop pytest's capture handler."""
    with patch.object(cli, "setup_logging") as setup:
        yield setup


class TestParseArguments:

    def test_full_command_line(self):
        options = cli.parse_arguments(["WATCH", "dist", "--target", "server", "--verbose", "--", "--port", "80"])

        assert options["command"] == "watch"
        assert options["output_dir"] == Path("dist")
        assert options["target"] == "server"
        assert options["verbose"] is True
        assert options["child_args"] == ["--port", "80"]

    def test_target_with_equals_sign(self):
        assert cli.parse_arguments(["check", "dist", "--target=app.js"])["target"] == "app.js"

    def test_child_args_default_to_none(self):
        assert cli.parse_arguments(["run", "dist"])["child_args"] is None

    @pytest.mark.parametrize("argv", [[], ["watch"], ["watch", "dist", "--bogus"], ["watch", "a", "b"], ["check", "dist", "--target"]])
    def test_usage_errors(self, argv):
        with pytest.raises(cli.UsageError):
            cli.parse_arguments(argv)


def test_main_returns_2_on_usage_error(capsys):
    assert cli.main(["watch"]) == 2
    assert "Usage:" in capsys.readouterr().out


def test_check_prints_resolved_target(tmp_path, capsys):
    (tmp_path / "app.py").write_text("")

    assert cli.main(["check", str(tmp_path), "--", "-v"]) == 0

    out = capsys.readouterr().out
    assert f"app.py -> {tmp_path / 'app.py'}" in out
    assert "args: -v" in out


def test_check_reports_ambiguity(tmp_path, capsys):
    (tmp_path / "a.py").write_text("")
    (tmp_path / "b.py").write_text("")

    assert cli.main(["check", str(tmp_path)]) == 1
    assert "[ambiguous-target]" in capsys.readouterr().out


def test_run_without_watch_mode_is_skipped(tmp_path):
    (tmp_path / "app.py").write_text("")

    with patch("buildrun.build.session.log") as session_log:
        assert cli.main(["run", str(tmp_path)]) == 0

    _, kwargs = session_log.warning.call_args
    assert kwargs["extra"] == {"kind": SKIPPED_NOT_WATCHING}


def test_watch_stops_on_keyboard_interrupt(tmp_path):
    with patch.object(cli, "watch_output_directory", side_effect=KeyboardInterrupt), \
            patch.object(cli.setproctitle, "setproctitle") as set_title:
        assert cli.main(["watch", str(tmp_path)]) == 0

    assert "buildrun - watch" in set_title.call_args[0][0]
