"""Listener binding and the host shown in the printed URL."""

import ipaddress
import socket
from typing import List, Optional

import psutil

from . import config
from .errors import StartupError


# Interface name fragments of tunnels whose address a LAN peer cannot reach.
_TUNNEL_NAMES = ("tun", "tap", "wg", "vpn", "tailscale", "zerotier", "nordlynx", "utun", "ppp")

# UDP connect only selects a route; nothing is sent.
_ROUTE_TARGET = ("8.8.8.8", 8)


def _route_ip() -> Optional[str]:
    """Local address the default route would use, or None without a route."""
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.connect(_ROUTE_TARGET)
        return str(s.getsockname()[0] or "") or None
    except OSError:
        return None
    finally:
        s.close()


def _is_tunnel(iface: str) -> bool:
    name = str(iface or "").lower()
    return any(part in name for part in _TUNNEL_NAMES)


def lan_addresses() -> List[str]:
    """IPv4 addresses of interfaces that are up and not tunnels, private ranges first."""
    try:
        by_iface = psutil.net_if_addrs() or {}
        stats = psutil.net_if_stats() or {}
    except (OSError, RuntimeError):
        return []

    private: List[str] = []
    public: List[str] = []
    for iface, entries in by_iface.items():
        st = stats.get(iface)
        if _is_tunnel(iface) or (st is not None and not st.isup):
            continue
        for entry in entries:
            if entry.family != socket.AF_INET:
                continue
            try:
                addr = ipaddress.IPv4Address(entry.address)
            except ValueError:
                continue
            if addr.is_loopback or addr.is_link_local:
                continue
            bucket = private if addr.is_private else public
            if entry.address not in bucket:
                bucket.append(entry.address)
    return private + public


def get_outbound_ip() -> str:
    """Best-effort address other hosts on the network can reach us on.

    The default-route address is used unless `config.IGNORE_VPN` is set and
    that route goes through a tunnel, in which case a LAN interface wins.
    """
    route_ip = _route_ip()
    if config.IGNORE_VPN:
        candidates = lan_addresses()
        if candidates and route_ip not in candidates:
            return candidates[0]
    return route_ip or "127.0.0.1"


def bind_listener(host: str = "0.0.0.0", port: int = 0) -> socket.socket:
    """Bind and listen on `host:port`; port 0 asks the OS for an ephemeral one."""
    family = socket.AF_INET6 if ":" in str(host or "") else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, int(port)))
        sock.listen(128)
        sock.set_inheritable(True)
    except OSError as e:
        sock.close()
        raise StartupError(f"cannot listen on {host}:{port}: {e}") from e
    return sock
