"""
Connectivity detection for offline-aware components.
"""

from .monitor import ConnectivityMonitor, ConnectivityListener, DnsProbe

__all__ = [
    "ConnectivityMonitor",
    "ConnectivityListener",
    "DnsProbe"
]
