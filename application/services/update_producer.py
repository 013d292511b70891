"""Background loop that polls the data source and broadcasts updates.

One cycle: for each configured city, in order, fetch a record and send a
``weatherUpdate`` to that city's subscribers, pausing ``inter_topic_delay``
between cities; then send one ``heartbeat`` to every open connection.
Cycles repeat every ``poll_interval`` after an ``initial_delay``.

``stop()`` interrupts any wait. A cycle cut short by it broadcasts nothing
further, heartbeat included.
"""
from __future__ import annotations

import asyncio
from typing import List, Optional

from application.ports.realtime import HeartbeatEvent, WeatherDataSource, WeatherUpdateEvent
from core.logging_config import get_logger
from domain.common.exceptions import WeatherFetchError
from infrastructure.realtime.broadcaster import BroadcastEngine
from infrastructure.realtime.connection_registry import ConnectionRegistry


logger = get_logger(__name__)


class UpdateProducer:
    def __init__(
        self,
        *,
        source: WeatherDataSource,
        broadcaster: BroadcastEngine,
        registry: ConnectionRegistry,
        cities: List[str],
        initial_delay: float = 5.0,
        inter_topic_delay: float = 1.0,
        poll_interval: float = 30.0,
    ) -> None:
        self._source = source
        self._broadcaster = broadcaster
        self._registry = registry
        self._cities = list(cities)
        self._initial_delay = initial_delay
        self._inter_topic_delay = inter_topic_delay
        self._poll_interval = poll_interval
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._cycle = 0

    @property
    def cycle_count(self) -> int:
        return self._cycle

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task  # type: ignore[return-value]
        self._stop.clear()
        self._task = asyncio.create_task(self.run(), name="weather-update-producer")
        logger.info("producer_started", cities=self._cities, poll_interval=self._poll_interval)
        return self._task

    async def stop(self) -> None:
        self._stop.set()
        task, self._task = self._task, None
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("producer_stopped", cycles=self._cycle)

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True if stop was requested meanwhile."""
        if self._stop.is_set():
            return True
        if seconds <= 0:
            # still yield so a zero-delay loop cannot starve the event loop
            await asyncio.sleep(0)
            return self._stop.is_set()
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def run(self) -> None:
        if await self._wait(self._initial_delay):
            return
        while not self._stop.is_set():
            try:
                completed = await self.run_cycle()
            except Exception as exc:
                # one bad cycle must not end the loop
                logger.error("update_cycle_failed", cycle=self._cycle, error=str(exc), exc_info=True)
                completed = True
            if not completed or await self._wait(self._poll_interval):
                return

    async def run_cycle(self) -> bool:
        """Run one full cycle. Returns False if stop interrupted it."""
        self._cycle += 1
        logger.info("update_cycle_started", cycle=self._cycle)

        updated = 0
        for city in self._cities:
            if self._stop.is_set():
                return False
            if await self._publish_city(city):
                updated += 1
            if await self._wait(self._inter_topic_delay):
                return False

        total_clients = await self._registry.size()
        heartbeat = HeartbeatEvent(total_clients=total_clients, cities_monitored=len(self._cities))
        await self._broadcaster.broadcast_all(heartbeat)
        logger.info("heartbeat_sent", cycle=self._cycle, total_clients=total_clients, cities_updated=updated)
        return True

    async def _publish_city(self, city: str) -> bool:
        try:
            record = await self._source.fetch(city)
        except WeatherFetchError as exc:
            logger.warning("weather_fetch_failed", city=city, reason=exc.reason)
            return False
        except Exception as exc:
            logger.error("weather_fetch_failed", city=city, reason=str(exc), exc_info=True)
            return False
        if self._stop.is_set():
            return False

        event = WeatherUpdateEvent.from_record(record)
        delivered = await self._broadcaster.broadcast_to_topic(city, event)
        logger.info(
            "weather_updated",
            city=city,
            temperature=event.temperature,
            delivered=delivered,
        )
        return True
