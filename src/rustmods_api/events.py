"""Catalog mutation notifications.

Every catalog write path reports ``item_mutated`` exactly once. Mutations
are collected in a queue owned by the current ``transaction()`` context
and drained once when it exits, so a save that touches the title, the
overrides and the downloads of one item produces a single invalidation.

The queue lives in a ``ContextVar``: concurrent requests (threads or
asyncio tasks) never see each other's pending mutations.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass

from loguru import logger


@dataclass
class ItemMutation:
    """A pending change to one catalog item."""

    item_id: int
    downloads_changed: bool = False


MutationHandler = Callable[[list[ItemMutation]], None]


class MutationQueue:
    """Pending mutations of one transaction, merged per item id."""

    def __init__(self) -> None:
        self._pending: dict[int, ItemMutation] = {}

    def add(self, item_id: int, downloads_changed: bool = False) -> None:
        existing = self._pending.get(item_id)
        if existing is None:
            self._pending[item_id] = ItemMutation(item_id, downloads_changed)
        elif downloads_changed:
            existing.downloads_changed = True

    def drain(self) -> list[ItemMutation]:
        """Return pending mutations in arrival order and empty the queue."""
        drained = list(self._pending.values())
        self._pending.clear()
        return drained

    def __len__(self) -> int:
        return len(self._pending)


_current_queue: ContextVar[MutationQueue | None] = ContextVar(
    "rustmods_mutation_queue", default=None
)


class CatalogEvents:
    """Fan-out of drained mutations to subscribed handlers."""

    def __init__(self, handler: MutationHandler | None = None) -> None:
        self._handlers: list[MutationHandler] = []
        if handler is not None:
            self._handlers.append(handler)

    def subscribe(self, handler: MutationHandler) -> None:
        self._handlers.append(handler)

    @contextmanager
    def transaction(self) -> Iterator[MutationQueue]:
        """Collect mutations until the block exits, then dispatch them once.

        Nested transactions join the outermost one. Dispatch also happens
        when the block raises.
        """
        queue = _current_queue.get()
        if queue is not None:
            yield queue
            return

        queue = MutationQueue()
        token = _current_queue.set(queue)
        try:
            yield queue
        finally:
            _current_queue.reset(token)
            self._dispatch(queue.drain())

    def item_mutated(
        self,
        item_id: int,
        downloads_changed: bool = False,
        autosave: bool = False,
    ) -> None:
        """Report a change to an item (create, update, download change)."""
        if autosave:
            logger.debug(f"Ignoring autosave of item {item_id}")
            return
        queue = _current_queue.get()
        if queue is not None:
            queue.add(item_id, downloads_changed)
            return
        with self.transaction() as queue:
            queue.add(item_id, downloads_changed)

    def _dispatch(self, mutations: list[ItemMutation]) -> None:
        if not mutations:
            return
        for handler in self._handlers:
            # Fire-and-forget
            try:
                handler(mutations)
            except Exception as e:
                logger.error(f"Mutation handler failed (ignored): {e}")
