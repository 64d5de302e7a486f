"""
Unit tests for connectivity monitoring.
"""
import asyncio
import socket

import pytest

from safehorizon.infrastructure.connectivity import ConnectivityMonitor, DnsProbe
from safehorizon.shared.config import ConnectivityConfig


class TestConnectivityMonitor:
    """Test cases for ConnectivityMonitor."""

    @pytest.fixture
    def monitor(self, fake_probe) -> ConnectivityMonitor:
        return ConnectivityMonitor(fake_probe, ConnectivityConfig(check_interval_seconds=3600))

    def test_starts_online(self, monitor):
        assert monitor.is_online

    @pytest.mark.asyncio
    async def test_transition_notifies_listeners(self, monitor, fake_probe):
        events = []
        monitor.add_listener(events.append)

        fake_probe.online = False
        assert await monitor.check() is False
        fake_probe.online = True
        assert await monitor.check() is True

        assert events == [False, True]

    @pytest.mark.asyncio
    async def test_no_notification_without_change(self, monitor):
        events = []
        monitor.add_listener(events.append)

        await monitor.check()
        await monitor.report(True)

        assert events == []

    @pytest.mark.asyncio
    async def test_async_listener_and_failing_listener(self, monitor):
        events = []

        async def async_listener(is_online):
            events.append(("async", is_online))

        def broken_listener(is_online):
            raise RuntimeError("listener bug")

        monitor.add_listener(broken_listener)
        monitor.add_listener(async_listener)

        await monitor.report(False)

        assert events == [("async", False)]
        assert not monitor.is_online

    @pytest.mark.asyncio
    async def test_probe_error_means_offline(self, monitor, fake_probe):
        async def broken():
            raise OSError("no route to host")

        fake_probe.check = broken

        assert await monitor.check() is False
        assert not monitor.is_online

    @pytest.mark.asyncio
    async def test_remove_listener(self, monitor):
        events = []
        monitor.add_listener(events.append)
        monitor.remove_listener(events.append)
        monitor.remove_listener(events.append)

        await monitor.report(False)

        assert events == []

    @pytest.mark.asyncio
    async def test_initialize_probes_and_close(self, monitor, fake_probe):
        fake_probe.online = False

        await monitor.initialize()
        assert fake_probe.calls == 1
        assert not monitor.is_online

        await monitor.close()


class TestDnsProbe:
    """Test cases for DnsProbe."""

    @pytest.mark.asyncio
    async def test_resolution_failure(self, monkeypatch):
        async def fail(*args, **kwargs):
            raise socket.gaierror("Name or service not known")

        monkeypatch.setattr(asyncio.get_running_loop(), "getaddrinfo", fail)

        assert await DnsProbe("example.invalid").check() is False

    @pytest.mark.asyncio
    async def test_resolution_success(self, monkeypatch):
        async def resolve(*args, **kwargs):
            return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("93.184.216.34", 443))]

        monkeypatch.setattr(asyncio.get_running_loop(), "getaddrinfo", resolve)

        assert await DnsProbe("example.com").check() is True

    @pytest.mark.asyncio
    async def test_resolution_timeout(self, monkeypatch):
        async def hang(*args, **kwargs):
            await asyncio.sleep(1)

        monkeypatch.setattr(asyncio.get_running_loop(), "getaddrinfo", hang)

        assert await DnsProbe("example.com", timeout_seconds=0.01).check() is False
