"""Callback port selection.

The server hands back a CSV of alternative ports alongside the OAuth URL.
The default port is used when free; otherwise the first free alternative
wins. Checking is bind-and-release, so a port can be taken between the check
and the callback server binding it. That window is acceptable for a
single-user CLI.
"""

from __future__ import annotations

import logging
import socket

from ..exceptions import NoPortAvailableError
from .constants import CALLBACK_HOST

logger = logging.getLogger(__name__)


def is_valid_port(port: str) -> bool:
    """True for purely numeric strings in 1-65535."""
    if not port or not (port.isascii() and port.isdigit()):
        return False
    return 0 < int(port) <= 65535


def is_port_occupied(port: str, host: str = CALLBACK_HOST) -> bool:
    """Try to bind ``port``; invalid ports count as occupied."""
    if not is_valid_port(port):
        return True
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, int(port)))
        except OSError:
            return True
    return False


def parse_alternative_ports(alternative_ports: str) -> list[str]:
    """Split a CSV of ports, dropping blanks and invalid entries while keeping order."""
    ports = []
    for entry in (alternative_ports or "").split(","):
        entry = entry.strip()
        if not entry:
            continue
        if not is_valid_port(entry):
            logger.debug("Ignoring invalid alternative port %r", entry)
            continue
        ports.append(entry)
    return ports


def select_port(default_port: str, alternative_ports: str, host: str = CALLBACK_HOST) -> str:
    """Return the default port if free, else the first free alternative.

    Raises:
        NoPortAvailableError: every candidate is occupied. ``attempted``
            lists the default port followed by each alternative tried.
    """
    if not is_port_occupied(default_port, host):
        return default_port

    attempted = [default_port]
    for port in parse_alternative_ports(alternative_ports):
        attempted.append(port)
        if not is_port_occupied(port, host):
            logger.info("Default port %s is occupied, using alternative port %s", default_port, port)
            return port

    raise NoPortAvailableError(default_port, attempted)
