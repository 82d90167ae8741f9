from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional

from .errors import SocketError
from .message import Message
from .tcp_socket import TcpSocket

@dataclass
class SocketMap:
    """Live sockets by id; routes an indication to the socket it belongs to."""
    sockets: Dict[int, TcpSocket] = field(default_factory=dict)

    def add_socket(self, sock: TcpSocket) -> None:
        existing = self.sockets.get(sock.socket_id)
        if existing is not None and existing is not sock:
            raise SocketError(f"SocketMap: socket id {sock.socket_id} already in use")
        self.sockets[sock.socket_id] = sock

    def remove_socket(self, sock: TcpSocket) -> Optional[TcpSocket]:
        if self.sockets.get(sock.socket_id) is sock:
            return self.sockets.pop(sock.socket_id)
        return None

    def rekey(self, sock: TcpSocket, old_id: int) -> None:
        """Follow a socket whose id changed through renew()."""
        if self.sockets.get(old_id) is sock:
            del self.sockets[old_id]
        self.add_socket(sock)

    def get(self, socket_id: int) -> Optional[TcpSocket]:
        return self.sockets.get(socket_id)

    def find_socket_for(self, msg: Message) -> Optional[TcpSocket]:
        return self.sockets.get(msg.socket_id)

    def delete_sockets(self) -> None:
        """Destroy every socket (firing socket_deleted) and empty the map."""
        socks = list(self.sockets.values())
        self.sockets.clear()
        for s in socks:
            s.set_renew_hook(None)
            s.destroy()

    def __len__(self) -> int:
        return len(self.sockets)

    def __contains__(self, socket_id: object) -> bool:
        return socket_id in self.sockets
