"""In-process connection registry.

Keeps track of open connections and the topics (cities) each one is
subscribed to. The open-set is the key set of a single
connection -> subscriptions mapping, so a subscription set exists exactly
as long as its connection is registered.

The lock guards only in-memory mutation and copying; callers iterate the
returned snapshots without holding it, and no I/O ever happens under it.
"""
from __future__ import annotations

import asyncio
from collections import Counter
from typing import Dict, List, Set

from application.ports.realtime import Connection
from core.logging_config import get_logger


logger = get_logger(__name__)


class ConnectionRegistry:
    """Authoritative in-memory store of open connections and subscriptions."""

    def __init__(self) -> None:
        # connection -> set[topic]; insertion order doubles as snapshot order
        self._subscriptions: Dict[Connection, Set[str]] = {}
        self._lock = asyncio.Lock()

    async def register(self, conn: Connection) -> None:
        async with self._lock:
            self._subscriptions.setdefault(conn, set())
            total = len(self._subscriptions)
        logger.info("ws_registered", connection_id=conn.id, total=total)

    async def unregister(self, conn: Connection) -> None:
        async with self._lock:
            topics = self._subscriptions.pop(conn, None)
            total = len(self._subscriptions)
        if topics is not None:
            logger.info("ws_unregistered", connection_id=conn.id, remaining=total, topics=sorted(topics))

    async def subscribe(self, conn: Connection, topic: str | None) -> bool:
        """Add ``topic`` to the connection's set.

        Returns False without changing anything when the topic is blank or
        the connection is no longer registered (a close racing a trailing
        inbound message).
        """
        if topic is None or not topic.strip():
            return False
        async with self._lock:
            topics = self._subscriptions.get(conn)
            if topics is None:
                return False
            topics.add(topic)
        logger.info("ws_subscribed", connection_id=conn.id, city=topic)
        return True

    async def unsubscribe(self, conn: Connection, topic: str | None) -> bool:
        if topic is None:
            return False
        async with self._lock:
            topics = self._subscriptions.get(conn)
            if topics is None or topic not in topics:
                return False
            topics.discard(topic)
        logger.info("ws_unsubscribed", connection_id=conn.id, city=topic)
        return True

    async def snapshot_open_connections(self) -> List[Connection]:
        async with self._lock:
            return list(self._subscriptions)

    async def subscribers_of(self, topic: str) -> List[Connection]:
        async with self._lock:
            return [conn for conn, topics in self._subscriptions.items() if topic in topics]

    async def subscriptions_of(self, conn: Connection) -> frozenset[str]:
        async with self._lock:
            return frozenset(self._subscriptions.get(conn, ()))

    async def topic_counts(self) -> Dict[str, int]:
        async with self._lock:
            counts = Counter(t for topics in self._subscriptions.values() for t in topics)
        return dict(counts)

    async def size(self) -> int:
        async with self._lock:
            return len(self._subscriptions)

    async def clear(self) -> None:
        """Drop every connection. Used at shutdown."""
        async with self._lock:
            self._subscriptions.clear()
