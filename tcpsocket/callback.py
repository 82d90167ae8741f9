from __future__ import annotations
from typing import Any

from .message import Message, AvailableInfo, IndicationKind, StatusInfo


class SocketCallback:
    """
    Receives the events a TcpSocket observes. Override what you need; every
    method defaults to a no-op, which drops the indication.

    `user_data` is whatever was passed to TcpSocket.set_callback(), so one
    callback object can serve many sockets.
    """

    def socket_data_arrived(self, socket_id: int, user_data: Any, msg: Message, urgent: bool) -> None:
        pass

    def socket_available(self, socket_id: int, user_data: Any, info: AvailableInfo) -> None:
        pass

    def socket_established(self, socket_id: int, user_data: Any) -> None:
        pass

    def socket_peer_closed(self, socket_id: int, user_data: Any) -> None:
        pass

    def socket_closed(self, socket_id: int, user_data: Any) -> None:
        pass

    def socket_failure(self, socket_id: int, user_data: Any, code: IndicationKind) -> None:
        pass

    def socket_status_arrived(self, socket_id: int, user_data: Any, status: StatusInfo) -> None:
        pass

    def socket_deleted(self, socket_id: int, user_data: Any) -> None:
        """Called once from TcpSocket.destroy(); release anything keyed on socket_id."""
        pass
