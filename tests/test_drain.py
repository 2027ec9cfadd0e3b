"""Tests for concurrent stream draining."""

from __future__ import annotations

import asyncio

import pytest

from shellscope.process.drain import drain, fold_lines, read_lines


def make_stream(data: bytes, limit: int = 2**16) -> asyncio.StreamReader:
    stream = asyncio.StreamReader(limit=limit)
    stream.feed_data(data)
    stream.feed_eof()
    return stream


def collect(acc: list[str], line: str) -> list[str]:
    acc.append(line)
    return acc


class TestReadLines:
    """Line splitting and decoding."""

    @pytest.mark.asyncio
    async def test_strips_newlines(self) -> None:
        lines = [line async for line in read_lines(make_stream(b"a\nb\r\nc"))]
        assert lines == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_empty_stream(self) -> None:
        assert [line async for line in read_lines(make_stream(b""))] == []

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_replaced(self) -> None:
        lines = [line async for line in read_lines(make_stream(b"ok\xff\n"))]
        assert lines == ["ok\ufffd"]

    @pytest.mark.asyncio
    async def test_overlong_line_ends_stream(self) -> None:
        stream = make_stream(b"short\n" + b"x" * 100 + b"\nafter\n", limit=8)
        lines = [line async for line in read_lines(stream)]
        assert lines == ["short"]
        assert stream.at_eof()


class TestFoldLines:
    """Folding one stream."""

    @pytest.mark.asyncio
    async def test_folds_in_order(self) -> None:
        result = await fold_lines(make_stream(b"1\n2\n3\n"), 0, lambda acc, line: acc * 10 + int(line))
        assert result == 123

    @pytest.mark.asyncio
    async def test_echo_sees_every_line(self) -> None:
        seen: list[str] = []
        await fold_lines(make_stream(b"x\ny\n"), None, lambda acc, line: acc, seen.append)
        assert seen == ["x", "y"]


class TestDrain:
    """Draining stdout and stderr together."""

    @pytest.mark.asyncio
    async def test_returns_fold_and_stderr_text(self, capsys) -> None:
        acc, err = await drain(
            make_stream(b"one\ntwo\n"),
            make_stream(b"warn 1\nwarn 2\n"),
            [],
            collect,
        )
        assert acc == ["one", "two"]
        assert err == "warn 1\nwarn 2\n"

        captured = capsys.readouterr()
        assert captured.out == "one\ntwo\n"
        assert captured.err == "warn 1\nwarn 2\n"

    @pytest.mark.asyncio
    async def test_stdout_echo_can_be_disabled(self, capsys) -> None:
        acc, err = await drain(
            make_stream(b"quiet\n"),
            make_stream(b"loud\n"),
            [],
            collect,
            echo_stdout=False,
        )
        assert acc == ["quiet"]
        assert err == "loud\n"

        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err == "loud\n"

    @pytest.mark.asyncio
    async def test_empty_stderr(self) -> None:
        _, err = await drain(make_stream(b"x\n"), make_stream(b""), [], collect, echo_stdout=False)
        assert err == ""

    @pytest.mark.asyncio
    async def test_reads_streams_concurrently(self) -> None:
        """stdout is still open while stderr finishes; neither blocks the other."""
        stdout = asyncio.StreamReader()
        stderr = make_stream(b"first\n")

        task = asyncio.create_task(drain(stdout, stderr, [], collect, echo_stdout=False))
        await asyncio.sleep(0.01)
        assert not task.done()

        stdout.feed_data(b"late\n")
        stdout.feed_eof()
        acc, err = await asyncio.wait_for(task, timeout=5)
        assert acc == ["late"]
        assert err == "first\n"

    @pytest.mark.asyncio
    async def test_failing_fold_cancels_other_reader(self) -> None:
        stdout = make_stream(b"bad\n")
        stderr = asyncio.StreamReader()

        def explode(acc: None, line: str) -> None:
            raise RuntimeError(line)

        with pytest.raises(RuntimeError, match="bad"):
            await asyncio.wait_for(drain(stdout, stderr, None, explode, echo_stdout=False), timeout=5)

    @pytest.mark.asyncio
    async def test_readers_finished_after_failure(self) -> None:
        """Neither reader task is left running once drain() has raised."""
        stdout = make_stream(b"bad\n")
        stderr = asyncio.StreamReader()

        def explode(acc: None, line: str) -> None:
            raise RuntimeError(line)

        with pytest.raises(RuntimeError):
            await drain(stdout, stderr, None, explode, echo_stdout=False)

        others = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
        assert all(t.done() for t in others)
