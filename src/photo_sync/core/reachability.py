"""Network reachability tracking and the wifi-only sync gate.

A background thread probes the host's network interfaces (psutil) and, when a
probe host is set, opens a TCP connection to it. Whenever the probed path differs
from the previous one, ``update_path`` is called and every listener is notified.
"""

import logging
import socket
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional
from urllib.parse import urlparse

import psutil

from ..models import ConnectionType

logger = logging.getLogger(__name__)

WIFI_HINTS = ("wlan", "wlp", "wi-fi", "wifi", "airport", "en0")
CELLULAR_HINTS = ("wwan", "pdp_ip", "rmnet", "cellular", "ppp")
WIRED_HINTS = ("eth", "enp", "ens", "eno", "en1", "en2")


class ReachabilityError(Exception):
    """Raised when the current network path does not allow syncing."""


@dataclass(frozen=True)
class NetworkPath:
    """Snapshot of the network path."""

    connected: bool = False
    connection_type: ConnectionType = ConnectionType.UNKNOWN
    expensive: bool = False


PathListener = Callable[[NetworkPath], None]


def detect_connection_type() -> ConnectionType:
    """Best-effort classification of the active interface by its name."""
    try:
        stats = psutil.net_if_stats()
        addrs = psutil.net_if_addrs()
    except (OSError, RuntimeError) as e:
        logger.debug("Network type detection failed: %s", e)
        return ConnectionType.UNKNOWN

    found = set()
    for iface, st in stats.items():
        if not st.isup or iface not in addrs:
            continue
        name = iface.lower()
        if name.startswith("lo") or "loopback" in name:
            continue
        if any(hint in name for hint in WIFI_HINTS):
            found.add(ConnectionType.WIFI)
        elif any(hint in name for hint in CELLULAR_HINTS):
            found.add(ConnectionType.CELLULAR)
        elif any(hint in name for hint in WIRED_HINTS):
            found.add(ConnectionType.WIRED)

    # Wired wins over wifi, wifi over cellular
    for preferred in (
        ConnectionType.WIRED,
        ConnectionType.WIFI,
        ConnectionType.CELLULAR,
    ):
        if preferred in found:
            return preferred
    return ConnectionType.UNKNOWN


class ReachabilityMonitor:
    """Tracks connectivity and decides whether a sync may run."""

    def __init__(
        self,
        wifi_only: bool = True,
        probe_host: str = "",
        probe_port: int = 443,
        check_interval: float = 15.0,
        probe_timeout: float = 5.0,
    ) -> None:
        """Initialize reachability monitor.

        Args:
            wifi_only: Only allow syncing over wifi
            probe_host: Host to TCP-probe; empty means "any up interface is online"
            probe_port: Port to TCP-probe
            check_interval: Seconds between probes of the background thread
            probe_timeout: TCP connect timeout in seconds
        """
        self.wifi_only = wifi_only
        self.probe_host = probe_host
        self.probe_port = probe_port
        self.check_interval = check_interval
        self.probe_timeout = probe_timeout

        self._path = NetworkPath()
        self._listeners: List[PathListener] = []
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # Lifecycle

    def start(self) -> None:
        """Probe once and start the background monitoring thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._poll_once()
        self._thread = threading.Thread(
            target=self._monitor_loop, daemon=True, name="reachability-monitor"
        )
        self._thread.start()
        logger.info(
            "Reachability monitor started (interval=%.0fs)", self.check_interval
        )

    def stop(self) -> None:
        """Stop the background thread."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self.probe_timeout + 1)
            self._thread = None

    def set_probe_from_url(self, url: str) -> None:
        """Take the probe host and port from a service URL."""
        parsed = urlparse(url)
        self.probe_host = parsed.hostname or ""
        self.probe_port = parsed.port or (443 if parsed.scheme == "https" else 80)

    # Listeners

    def add_listener(self, listener: PathListener) -> None:
        """Register a callback fired on every path update."""
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: PathListener) -> None:
        """Unregister a callback."""
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # State

    @property
    def path(self) -> NetworkPath:
        """Current network path."""
        with self._lock:
            return self._path

    @property
    def connected(self) -> bool:
        """True when a usable network path exists."""
        return self.path.connected

    @property
    def expensive(self) -> bool:
        """True on metered paths."""
        return self.path.expensive

    @property
    def connection_type(self) -> ConnectionType:
        """Classified connection type."""
        return self.path.connection_type

    def update_path(
        self,
        connected: bool,
        connection_type: ConnectionType,
        expensive: Optional[bool] = None,
    ) -> NetworkPath:
        """Apply a path update and notify every listener once.

        Args:
            connected: Whether the path is usable
            connection_type: Classified connection type
            expensive: Metered flag; defaults to True for cellular

        Returns:
            The new path
        """
        if expensive is None:
            expensive = connection_type is ConnectionType.CELLULAR
        path = NetworkPath(
            connected=connected, connection_type=connection_type, expensive=expensive
        )
        with self._lock:
            self._path = path
            listeners = list(self._listeners)

        logger.debug(
            "Network path: connected=%s type=%s expensive=%s",
            path.connected,
            path.connection_type.value,
            path.expensive,
        )
        for listener in listeners:
            try:
                listener(path)
            except Exception as e:
                logger.warning("Reachability listener failed: %s", e)
        return path

    def can_sync(self) -> bool:
        """Whether the current path allows a sync under the wifi-only policy."""
        path = self.path
        # An unclassified link does not count as connected
        if not path.connected or path.connection_type is ConnectionType.UNKNOWN:
            return False
        if self.wifi_only:
            return path.connection_type is ConnectionType.WIFI
        return True

    def require_sync_allowed(self) -> None:
        """Raise ``ReachabilityError`` unless ``can_sync()`` holds."""
        if self.can_sync():
            return
        path = self.path
        if not path.connected:
            raise ReachabilityError("No network connection")
        if path.connection_type is ConnectionType.UNKNOWN:
            raise ReachabilityError("Network connection type is unknown")
        raise ReachabilityError(
            f"Sync requires wifi (current connection: {path.connection_type.value})"
        )

    # Probing

    def probe(self) -> NetworkPath:
        """Measure the current path without publishing it."""
        connection_type = detect_connection_type()
        if self.probe_host:
            connected = self._tcp_probe()
        else:
            connected = connection_type is not ConnectionType.UNKNOWN
        return NetworkPath(
            connected=connected,
            connection_type=connection_type,
            expensive=connection_type is ConnectionType.CELLULAR,
        )

    def _tcp_probe(self) -> bool:
        start = time.monotonic()
        try:
            with socket.create_connection(
                (self.probe_host, self.probe_port), timeout=self.probe_timeout
            ):
                logger.debug(
                    "Probe to %s:%d took %.0fms",
                    self.probe_host,
                    self.probe_port,
                    (time.monotonic() - start) * 1000,
                )
                return True
        except OSError:
            return False

    def _poll_once(self) -> None:
        try:
            probed = self.probe()
        except Exception as e:
            logger.debug("Reachability probe failed: %s", e)
            return
        if probed != self.path:
            self.update_path(probed.connected, probed.connection_type, probed.expensive)

    def _monitor_loop(self) -> None:
        while not self._stop_event.wait(self.check_interval):
            self._poll_once()
