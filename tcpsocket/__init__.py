"""
Public API:
- TcpSocket, SocketState: socket handle driving a TCP connection held by an external engine
- SocketCallback: events a socket reports (data, available, established, closed, ...)
- SocketRuntime, SocketMap: route indications to the socket they belong to
- open_runtime: one-liner factory resolving transport and codec labels
- MessageBuilder: builds commands and indications
- Envelope, Message, MsgType, CommandKind, IndicationKind: message types
- Transport: abstract class transports must implement
- IdentityAllocator: process-unique socket ids
- pack_frame, unpack_frame: framing (length-prefixed header + optional binary)
"""

# Socket handle
from .tcp_socket import TcpSocket, SocketState
from .callback import SocketCallback
from .errors import SocketError, ProtocolViolation

# Routing & runtime
from .socket_map import SocketMap
from .runtime import SocketRuntime
from .factory import open_runtime

# Builder & wire types
from .builder import MessageBuilder
from .message import (
    Envelope,
    Message,
    MsgType,
    CommandKind,
    IndicationKind,
    ConnectInfo,
    AvailableInfo,
    StatusInfo,
    PROTOCOL_TCP,
)

# Transport contract
from .transport import Transport

# Framing helpers
from .codecs import Codecs
from .wire import pack_frame, unpack_frame, WireError

from .ids import IdentityAllocator

__all__ = [
    "TcpSocket",
    "SocketState",
    "SocketCallback",
    "SocketError",
    "ProtocolViolation",
    "SocketMap",
    "SocketRuntime",
    "open_runtime",
    "MessageBuilder",
    "Envelope",
    "Message",
    "MsgType",
    "CommandKind",
    "IndicationKind",
    "ConnectInfo",
    "AvailableInfo",
    "StatusInfo",
    "PROTOCOL_TCP",
    "Transport",
    "Codecs",
    "pack_frame",
    "unpack_frame",
    "WireError",
    "IdentityAllocator",
]

__version__ = "0.1.0"
