"""Tests for the relpack CLI (main dispatch, build, targets, help-preview)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from relpack.cli.build import run_build_argv
from relpack.cli.main import main
from relpack.cli.preview import run_help_preview_argv, run_targets_argv
from relpack.targets import Host

CONFIG_YAML = """\
release:
  name: simple
  version: 0.1.0
  runtime_version: "14.2"
  path: _build/rel/simple
package:
  executable_name: simple-cli
  targets: [native]
  hide: [rpc]
"""


@pytest.fixture
def config_root(tmp_path: Path) -> Path:
    (tmp_path / "relpack.yaml").write_text(CONFIG_YAML)
    return tmp_path


class TestMain:
    def test_no_args_prints_usage(self, capsys) -> None:
        with patch("sys.argv", ["relpack"]), pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1
        assert "Usage: relpack" in capsys.readouterr().err

    def test_unknown_command(self, capsys) -> None:
        with patch("sys.argv", ["relpack", "frobnicate"]), pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1
        assert "Unknown command: frobnicate" in capsys.readouterr().err

    def test_dispatches_build(self) -> None:
        with (
            patch("sys.argv", ["relpack", "-v", "build", "--debug"]),
            patch("relpack.cli.build.run_build_argv") as m_build,
        ):
            main()
        m_build.assert_called_once_with(["--debug"])


class TestBuild:
    def test_missing_config_exits_1(self, tmp_path: Path, capsys) -> None:
        with (
            patch("relpack.cli.build.run_pipeline") as m_run,
            pytest.raises(SystemExit) as exc_info,
        ):
            run_build_argv(["--project-root", str(tmp_path)])
        assert exc_info.value.code == 1
        m_run.assert_not_called()
        assert "❌" in capsys.readouterr().err

    def test_overrides_reach_pipeline(self, config_root: Path) -> None:
        with (
            patch("relpack.cli.build.run_pipeline", return_value=0) as m_run,
            pytest.raises(SystemExit) as exc_info,
        ):
            run_build_argv(
                [
                    "--project-root",
                    str(config_root),
                    "--target",
                    "windows",
                    "--target",
                    "linux",
                    "--debug",
                    "--no-clean",
                ]
            )
        assert exc_info.value.code == 0
        config = m_run.call_args[0][0]
        assert config.targets == ("windows", "linux")
        assert config.debug is True
        assert config.no_clean is True
        assert config.executable_name == "simple-cli"
        assert config.release.file_tree_root == config_root.resolve() / "_build/rel/simple"

    def test_pipeline_failure_propagates_exit_code(self, config_root: Path) -> None:
        with (
            patch("relpack.cli.build.run_pipeline", return_value=1),
            pytest.raises(SystemExit) as exc_info,
        ):
            run_build_argv(["--project-root", str(config_root)])
        assert exc_info.value.code == 1


class TestPreview:
    def test_targets_lists_table(self, capsys) -> None:
        with (
            patch("relpack.cli.preview.detect_host", return_value=Host("linux", "x86_64")),
            pytest.raises(SystemExit) as exc_info,
        ):
            run_targets_argv([])
        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert "Host: linux/x86_64" in out
        assert "x86_64-windows-gnu" in out
        assert "linux_musl" in out

    def test_help_preview(self, config_root: Path, capsys) -> None:
        with (
            patch("relpack.cli.preview.detect_host", return_value=Host("linux", "x86_64")),
            pytest.raises(SystemExit) as exc_info,
        ):
            run_help_preview_argv(["--project-root", str(config_root)])
        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert "  simple-cli [COMMAND]" in out
        assert "--- start ---" in out
        # hidden commands keep their block but are left out of the summary
        assert "--- rpc ---" in out
        assert "  rpc" not in out.split("HELP:")[0]

    def test_help_preview_unsupported_target(self, config_root: Path, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            run_help_preview_argv(["--project-root", str(config_root), "--target", "plan9"])
        assert exc_info.value.code == 1
        assert "not supported" in capsys.readouterr().err
