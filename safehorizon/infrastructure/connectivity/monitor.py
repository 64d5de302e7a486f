"""
Connectivity monitoring.

A periodic reachability probe maintains a single online/offline flag and
notifies listeners on every transition. The host application can also push
its own connectivity signal with ``report``.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, List, Optional, Union

import structlog

from safehorizon.core.domain.interfaces import ConnectivityProbe
from safehorizon.infrastructure.scheduling import PeriodicTask
from safehorizon.shared.config import ConnectivityConfig

logger = structlog.get_logger(__name__)

ConnectivityListener = Callable[[bool], Union[None, Awaitable[None]]]


class DnsProbe(ConnectivityProbe):
    """Treat a successful DNS lookup as evidence of connectivity."""

    def __init__(self, host: str = "google.com", port: int = 443, timeout_seconds: float = 5.0):
        self.host = host
        self.port = port
        self.timeout_seconds = timeout_seconds

    async def check(self) -> bool:
        loop = asyncio.get_running_loop()
        try:
            addresses = await asyncio.wait_for(
                loop.getaddrinfo(self.host, self.port),
                timeout=self.timeout_seconds
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug("Reachability probe failed", host=self.host, error=str(e))
            return False
        return bool(addresses)


class ConnectivityMonitor:
    """Online/offline state with transition events."""

    def __init__(
        self,
        probe: Optional[ConnectivityProbe] = None,
        config: Optional[ConnectivityConfig] = None,
        initial_online: bool = True
    ):
        self.config = config or ConnectivityConfig()
        self.probe = probe or DnsProbe(
            self.config.probe_host,
            self.config.probe_port,
            self.config.probe_timeout_seconds
        )
        self._is_online = initial_online
        self._listeners: List[ConnectivityListener] = []
        self._probe_task = PeriodicTask("connectivity-probe", self.config.check_interval_seconds, self._scheduled_check)

    @property
    def is_online(self) -> bool:
        return self._is_online

    async def initialize(self) -> None:
        """Probe once, then keep probing on the configured interval."""
        await self.check()
        self._probe_task.start()
        logger.info("Connectivity monitor initialized", online=self._is_online)

    async def close(self) -> None:
        await self._probe_task.stop()
        self._listeners.clear()

    def add_listener(self, listener: ConnectivityListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ConnectivityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def check(self) -> bool:
        """Run the probe now and update the online flag."""
        try:
            online = bool(await self.probe.check())
        except Exception as e:
            logger.debug("Connectivity probe raised", error=str(e))
            online = False

        await self._update(online)
        return online

    async def report(self, is_online: bool) -> None:
        """Accept a connectivity signal pushed by the host application."""
        await self._update(bool(is_online))

    async def _update(self, online: bool) -> None:
        if online == self._is_online:
            return

        self._is_online = online
        if online:
            logger.info("Network connection restored")
        else:
            logger.warning("Network connection lost, entering offline mode")

        for listener in list(self._listeners):
            try:
                result: Any = listener(online)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("Connectivity listener error", error=str(e))

    async def _scheduled_check(self) -> None:
        await self.check()
