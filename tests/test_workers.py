# tests/test_workers.py
"""Tests for worker identity lookup."""

import asyncio
import threading

import pytest

from repeated_assert.workers import UNNAMED_WORKER, current_worker_id, current_worker_name
from tests.conftest import run_in_thread


def _identity_and_ident() -> tuple[str | None, int]:
    return current_worker_id(), threading.get_ident()


class TestCurrentWorkerId:
    def test_thread_name_and_ident_form_identity(self) -> None:
        result, error = run_in_thread(_identity_and_ident, "worker-7")

        assert error is None
        assert isinstance(result, tuple)
        identity, ident = result
        assert identity == f"worker-7#{ident}"

    def test_same_named_threads_have_distinct_identities(self) -> None:
        barrier = threading.Barrier(2)
        identities: list[str | None] = []
        lock = threading.Lock()

        def read() -> None:
            # Both threads alive at once, so their idents cannot be reused
            barrier.wait()
            identity = current_worker_id()
            with lock:
                identities.append(identity)
            barrier.wait()

        threads = [threading.Thread(target=read, name="worker") for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(identities) == 2
        assert identities[0] != identities[1]
        assert all(identity is not None and identity.startswith("worker#") for identity in identities)

    def test_empty_thread_name_has_no_identity(self) -> None:
        result, error = run_in_thread(current_worker_id, "")

        assert error is None
        assert result is None

    def test_identity_read_at_call_time(self) -> None:
        def rename_then_read() -> tuple[str | None, str | None, int]:
            before = current_worker_id()
            threading.current_thread().name = "renamed"
            return before, current_worker_id(), threading.get_ident()

        result, error = run_in_thread(rename_then_read, "original")

        assert error is None
        assert isinstance(result, tuple)
        before, after, ident = result
        assert (before, after) == (f"original#{ident}", f"renamed#{ident}")

    @pytest.mark.asyncio
    async def test_task_name_is_appended_inside_asyncio(self) -> None:
        thread = threading.current_thread()

        async def read() -> str | None:
            return current_worker_id()

        identity = await asyncio.create_task(read(), name="reader-task")

        assert identity == f"{thread.name}#{thread.ident}/reader-task"

    @pytest.mark.asyncio
    async def test_sibling_tasks_have_distinct_identities(self) -> None:
        async def read() -> str | None:
            await asyncio.sleep(0)
            return current_worker_id()

        first, second = await asyncio.gather(
            asyncio.create_task(read(), name="a"),
            asyncio.create_task(read(), name="b"),
        )

        assert first != second


class TestCurrentWorkerName:
    def test_named_worker(self) -> None:
        result, _ = run_in_thread(current_worker_name, "collector")
        assert result == "collector"

    def test_unnamed_worker_placeholder(self) -> None:
        result, _ = run_in_thread(current_worker_name, "")
        assert result == UNNAMED_WORKER == "<unnamed thread>"

    @pytest.mark.asyncio
    async def test_task_name_is_appended(self) -> None:
        thread_name = threading.current_thread().name

        async def read() -> str:
            return current_worker_name()

        assert await asyncio.create_task(read(), name="announcer") == f"{thread_name}/announcer"
