"""Local port allocation for the transient backend."""

import socket
from typing import Tuple

from helmactions.constants import LOOPBACK_HOST
from helmactions.errors import ProvisioningError


class PortAllocator:
    """Picks free loopback ports using the kernel's ephemeral port allocation.

    Both sockets stay bound until the second port is known, so the two
    ports always differ. They are released before the backend binds them;
    another process may still grab one in between.
    """

    def __init__(self, host: str = LOOPBACK_HOST, socket_module=socket):
        self.host = host
        self.socket = socket_module

    def allocate(self) -> Tuple[int, int]:
        try:
            with self.socket.socket(self.socket.AF_INET, self.socket.SOCK_STREAM) as main_sock:
                main_sock.bind((self.host, 0))
                with self.socket.socket(self.socket.AF_INET, self.socket.SOCK_STREAM) as health_sock:
                    health_sock.bind((self.host, 0))
                    return main_sock.getsockname()[1], health_sock.getsockname()[1]
        except OSError as exc:
            raise ProvisioningError(f"Could not allocate local ports: {exc}") from exc
