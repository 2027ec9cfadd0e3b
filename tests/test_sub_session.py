"""Tests for sub-session scoping."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from shellscope.errors import CommandFailed, NotADirectory
from shellscope.session.state import LaunchStrategy

PY = sys.executable


class TestSubRestores:
    """State that a sub-session puts back on exit."""

    def test_directory_restored(self, sh, tmp_path: Path) -> None:
        (tmp_path / "inner").mkdir()
        with sh.sub():
            sh.cd("inner")
            assert sh.pwd() == (tmp_path / "inner").resolve()
        assert sh.pwd() == tmp_path

    def test_environment_restored(self, sh) -> None:
        sh.setenv("SCOPED", "outer")
        with sh.sub():
            sh.setenv("SCOPED", "inner")
            sh.setenv("ONLY_INNER", "1")
            assert sh.get_env("SCOPED") == "inner"
        assert sh.get_env("SCOPED") == "outer"
        assert sh.get_env("ONLY_INNER") is None

    def test_flags_restored(self, sh) -> None:
        with sh.sub():
            sh.modify(_set_flags)
            assert sh.get().echo_stdout is False
        state = sh.get()
        assert state.echo_stdout is True
        assert state.echo_commands is False
        assert state.tracing_enabled is True
        assert state.fail_on_nonzero_exit is True
        assert state.launch_strategy is LaunchStrategy.ESCAPED

    def test_nested_scopes(self, sh, tmp_path: Path) -> None:
        (tmp_path / "a" / "b").mkdir(parents=True)
        with sh.chdir("a"):
            with sh.chdir("b"):
                assert sh.pwd().name == "b"
            assert sh.pwd().name == "a"
        assert sh.pwd() == tmp_path

    def test_restored_when_body_raises(self, sh, tmp_path: Path) -> None:
        (tmp_path / "inner").mkdir()
        with pytest.raises(RuntimeError, match="inside"):
            with sh.chdir("inner"), sh.errexit(False):
                raise RuntimeError("inside")
        assert sh.pwd() == tmp_path
        assert sh.get().fail_on_nonzero_exit is True


class TestSubKeeps:
    """State that survives leaving a sub-session."""

    def test_trace_is_appended(self, sh) -> None:
        sh.trace("before")
        with sh.sub():
            sh.trace("inside")
            assert sh.get().trace_log == "inside\n"
        sh.trace("after")
        assert sh.get().trace_log == "before\ninside\nafter\n"

    def test_trace_is_appended_when_scope_fails(self, sh) -> None:
        sh.trace("before")
        with pytest.raises(RuntimeError):
            with sh.sub():
                sh.trace("inside")
                raise RuntimeError("scope failed")
        assert sh.get().trace_log == "before\ninside\n"

    @pytest.mark.asyncio
    async def test_last_command_results_survive(self, sh) -> None:
        with sh.silently(), sh.errexit(False):
            await sh.run(PY, "-c", "import sys; sys.stderr.write('inner failure'); sys.exit(4)")
        assert sh.last_exit_code() == 4
        assert sh.last_stderr() == "inner failure\n"

    @pytest.mark.asyncio
    async def test_run_scoped(self, sh, tmp_path: Path) -> None:
        async def hop() -> Path:
            sh.mkdir("elsewhere")
            sh.cd("elsewhere")
            return sh.pwd()

        inside = await sh.run_scoped(hop())
        assert inside.name == "elsewhere"
        assert sh.pwd() == tmp_path


class TestScopedVariants:
    """Convenience scopes built on sub()."""

    def test_silently_and_verbosely(self, sh) -> None:
        with sh.silently():
            state = sh.get()
            assert (state.echo_stdout, state.echo_commands) == (False, False)
            with sh.verbosely():
                state = sh.get()
                assert (state.echo_stdout, state.echo_commands) == (True, True)

    def test_escaping(self, sh) -> None:
        with sh.escaping(False):
            assert sh.get().launch_strategy is LaunchStrategy.SHELL
        assert sh.get().launch_strategy is LaunchStrategy.ESCAPED

    @pytest.mark.asyncio
    async def test_errexit_restored_for_later_commands(self, sh) -> None:
        with sh.silently():
            with sh.errexit(False):
                await sh.run(PY, "-c", "raise SystemExit(2)")
            with pytest.raises(CommandFailed):
                await sh.run(PY, "-c", "raise SystemExit(2)")

    def test_chdir_p_creates(self, sh, tmp_path: Path) -> None:
        with sh.chdir_p("x/y"):
            assert sh.pwd() == (tmp_path / "x" / "y").resolve()
        assert (tmp_path / "x" / "y").is_dir()
        assert sh.pwd() == tmp_path

    def test_chdir_missing_raises(self, sh, tmp_path: Path) -> None:
        with pytest.raises(NotADirectory):
            with sh.chdir("missing"):
                pass
        assert sh.pwd() == tmp_path

    def test_cd_to_file_raises(self, sh, tmp_path: Path) -> None:
        (tmp_path / "file.txt").write_text("x")
        with pytest.raises(NotADirectory, match="file.txt"):
            sh.cd("file.txt")
        assert sh.pwd() == tmp_path

    @pytest.mark.asyncio
    async def test_time_runs_in_sub(self, sh, tmp_path: Path) -> None:
        (tmp_path / "t").mkdir()

        async def work() -> str:
            sh.cd("t")
            await sh.sleep(0.01)
            return "done"

        elapsed, result = await sh.time(work())
        assert result == "done"
        assert elapsed >= 0.005
        assert sh.pwd() == tmp_path


class TestStateAccess:
    """get / put / modify."""

    def test_get_returns_copy(self, sh) -> None:
        state = sh.get()
        state.environment["LEAK"] = "1"
        assert sh.get_env("LEAK") is None

    def test_put_replaces(self, sh, tmp_path: Path) -> None:
        state = sh.get()
        state.echo_commands = True
        sh.put(state)
        state.echo_commands = False
        assert sh.get().echo_commands is True

    def test_env_helpers(self, sh) -> None:
        sh.setenv("EMPTY", "")
        assert sh.get_env("EMPTY") is None
        assert sh.get_env_text("EMPTY") == ""
        assert sh.get_env_def("EMPTY", "fallback") == "fallback"
        assert sh.get_env_def("UNSET_SHELLSCOPE_VAR", "d") == "d"

    def test_append_to_path(self, sh, tmp_path: Path) -> None:
        sh.setenv("PATH", "/usr/bin")
        sh.append_to_path("tools")
        assert sh.get_env("PATH") == f"/usr/bin{os.pathsep}{tmp_path / 'tools'}"


def _set_flags(state):
    state.echo_stdout = False
    state.echo_commands = True
    state.tracing_enabled = False
    state.fail_on_nonzero_exit = False
    state.escape_args = False
    return state
