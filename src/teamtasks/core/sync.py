# src/teamtasks/core/sync.py

from __future__ import annotations

"""
Snapshot fan-out.

Every publish delivers a full-replacement snapshot to every live subscriber.
Subscribers own their subscription and cancel it when their view goes away.
"""

import inspect
import itertools
import logging
from typing import Any

from .ports import SnapshotCallback

logger = logging.getLogger(__name__)


class HubSubscription:
    def __init__(self, hub: SnapshotHub, token: int) -> None:
        self._hub = hub
        self._token = token

    @property
    def token(self) -> int:
        return self._token

    @property
    def active(self) -> bool:
        return self._hub.has(self._token)

    def cancel(self) -> None:
        """Idempotent."""
        self._hub.drop(self._token)


class SnapshotHub:
    def __init__(self, name: str = "snapshots") -> None:
        self.name = name
        self._subscribers: dict[int, SnapshotCallback] = {}
        self._tokens = itertools.count(1)

    def __len__(self) -> int:
        return len(self._subscribers)

    def has(self, token: int) -> bool:
        return token in self._subscribers

    def subscribe(self, callback: SnapshotCallback) -> HubSubscription:
        token = next(self._tokens)
        self._subscribers[token] = callback
        logger.debug("hub=%s subscribed token=%s total=%s", self.name, token, len(self))
        return HubSubscription(self, token)

    def drop(self, token: int) -> None:
        if self._subscribers.pop(token, None) is not None:
            logger.debug("hub=%s cancelled token=%s total=%s", self.name, token, len(self))

    async def deliver(self, token: int, snapshot: list[Any]) -> None:
        callback = self._subscribers.get(token)
        if callback is None:
            return
        await self._call(token, callback, snapshot)

    async def publish(self, snapshot: list[Any]) -> None:
        # Copy: a callback may cancel its own (or another) subscription.
        for token, callback in list(self._subscribers.items()):
            if token not in self._subscribers:
                continue
            await self._call(token, callback, list(snapshot))

    async def _call(self, token: int, callback: SnapshotCallback, snapshot: list[Any]) -> None:
        # A broken view must not fail the write that triggered the snapshot.
        try:
            result = callback(snapshot)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("hub=%s subscriber token=%s failed", self.name, token)
