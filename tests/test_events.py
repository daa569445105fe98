"""Tests for src/rustmods_api/events.py — mutation queue and dispatch."""

import asyncio
import threading
from unittest.mock import MagicMock

import pytest

from rustmods_api.events import CatalogEvents, ItemMutation, MutationQueue


class TestMutationQueue:
    def test_merges_same_item(self):
        queue = MutationQueue()
        queue.add(1)
        queue.add(2)
        queue.add(1, downloads_changed=True)
        queue.add(1)

        assert len(queue) == 2
        assert queue.drain() == [
            ItemMutation(1, downloads_changed=True),
            ItemMutation(2, downloads_changed=False),
        ]
        assert len(queue) == 0

    def test_drain_empty(self):
        assert MutationQueue().drain() == []


class TestCatalogEvents:
    def test_single_mutation_dispatches_immediately(self):
        handler = MagicMock()
        events = CatalogEvents(handler)

        events.item_mutated(7)

        handler.assert_called_once_with([ItemMutation(7, False)])

    def test_transaction_dispatches_once(self):
        handler = MagicMock()
        events = CatalogEvents(handler)

        with events.transaction():
            events.item_mutated(1)
            events.item_mutated(1, downloads_changed=True)
            events.item_mutated(2)
            handler.assert_not_called()

        handler.assert_called_once_with(
            [ItemMutation(1, True), ItemMutation(2, False)]
        )

    def test_nested_transactions_join_outer(self):
        handler = MagicMock()
        events = CatalogEvents(handler)

        with events.transaction():
            with events.transaction():
                events.item_mutated(1)
            handler.assert_not_called()
            events.item_mutated(2)

        handler.assert_called_once()
        assert [m.item_id for m in handler.call_args.args[0]] == [1, 2]

    def test_empty_transaction_does_not_dispatch(self):
        handler = MagicMock()
        events = CatalogEvents(handler)
        with events.transaction():
            pass
        handler.assert_not_called()

    def test_autosave_ignored(self):
        handler = MagicMock()
        events = CatalogEvents(handler)
        events.item_mutated(1, autosave=True)
        handler.assert_not_called()

    def test_dispatch_on_error_then_reraise(self):
        handler = MagicMock()
        events = CatalogEvents(handler)

        with pytest.raises(ValueError):
            with events.transaction():
                events.item_mutated(3)
                raise ValueError("write failed halfway")

        handler.assert_called_once_with([ItemMutation(3, False)])

    def test_handler_failure_is_swallowed(self):
        failing = MagicMock(side_effect=RuntimeError("rebuild failed"))
        after = MagicMock()
        events = CatalogEvents(failing)
        events.subscribe(after)

        events.item_mutated(1)

        failing.assert_called_once()
        after.assert_called_once()

    def test_queues_isolated_between_threads(self):
        handler = MagicMock()
        events = CatalogEvents(handler)
        entered = threading.Event()
        release = threading.Event()

        def other_writer():
            entered.wait()
            # Not inside the main thread's transaction: dispatched alone
            events.item_mutated(99)
            release.set()

        thread = threading.Thread(target=other_writer)
        thread.start()
        with events.transaction():
            events.item_mutated(1)
            entered.set()
            release.wait(timeout=5)
        thread.join(timeout=5)

        batches = [call.args[0] for call in handler.call_args_list]
        assert [ItemMutation(99, False)] in batches
        assert [ItemMutation(1, False)] in batches

    async def test_queues_isolated_between_tasks(self):
        handler = MagicMock()
        events = CatalogEvents(handler)

        async def writer(item_id: int):
            with events.transaction():
                events.item_mutated(item_id)
                await asyncio.sleep(0)

        await asyncio.gather(writer(1), writer(2))

        batches = sorted(
            (tuple(m.item_id for m in call.args[0]) for call in handler.call_args_list)
        )
        assert batches == [(1,), (2,)]
