from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Union
from enum import StrEnum

from .errors import ProtocolViolation

# Protocol marker stamped on every message; lets one channel carry several families
PROTOCOL_TCP = "tcp"

class MsgType(StrEnum):
    COMMAND    = "COMMAND"     # socket -> engine
    INDICATION = "INDICATION"  # engine -> socket

class CommandKind(StrEnum):
    OPEN_ACTIVE  = "OPEN_ACTIVE"
    OPEN_PASSIVE = "OPEN_PASSIVE"
    ACCEPT       = "ACCEPT"
    SEND         = "SEND"
    CLOSE        = "CLOSE"
    ABORT        = "ABORT"
    STATUS       = "STATUS"

class IndicationKind(StrEnum):
    DATA               = "DATA"
    URGENT_DATA        = "URGENT_DATA"
    AVAILABLE          = "AVAILABLE"
    ESTABLISHED        = "ESTABLISHED"
    PEER_CLOSED        = "PEER_CLOSED"
    CLOSED             = "CLOSED"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    CONNECTION_RESET   = "CONNECTION_RESET"
    TIMED_OUT          = "TIMED_OUT"
    STATUS             = "STATUS"

FAILURE_KINDS = frozenset({
    IndicationKind.CONNECTION_REFUSED,
    IndicationKind.CONNECTION_RESET,
    IndicationKind.TIMED_OUT,
})

Kind = Union[CommandKind, IndicationKind]

@dataclass(frozen=True)
class Envelope:
    """
    Envelope fields, 'payload' is the control info, optional 'binary' on the Message
    """
    type: MsgType                # COMMAND | INDICATION
    kind: Kind                   # CommandKind for commands, IndicationKind for indications
    socket_id: int               # connection the message is addressed to / comes from
    protocol: str                # transport family marker, "tcp"
    name: str                    # display label, e.g. "ActiveOPEN"
    payload: Dict[str, Any] = field(default_factory=dict)

@dataclass(frozen=True)
class Message:
    env: Envelope
    binary: Optional[bytes] = None   # user data for SEND / DATA

    @property
    def socket_id(self) -> int:
        return self.env.socket_id

    @property
    def kind(self) -> Kind:
        return self.env.kind

    def is_command(self) -> bool:
        return self.env.type == MsgType.COMMAND

    def is_indication(self) -> bool:
        return self.env.type == MsgType.INDICATION


@dataclass(frozen=True)
class ConnectInfo:
    """Endpoint pair reported by ESTABLISHED."""
    local_addr: Optional[str]
    local_port: int
    remote_addr: Optional[str]
    remote_port: int

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ConnectInfo":
        try:
            return cls(
                local_addr=payload.get("local_addr"),
                local_port=int(payload["local_port"]),
                remote_addr=payload.get("remote_addr"),
                remote_port=int(payload["remote_port"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolViolation(f"malformed connection info: {payload!r}") from e

    def to_payload(self) -> Dict[str, Any]:
        return {
            "local_addr":  self.local_addr,
            "local_port":  self.local_port,
            "remote_addr": self.remote_addr,
            "remote_port": self.remote_port,
        }

@dataclass(frozen=True)
class AvailableInfo(ConnectInfo):
    """AVAILABLE announcement: a new connection arrived on a listener."""
    new_socket_id: int = -1

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AvailableInfo":
        base = ConnectInfo.from_payload(payload)
        try:
            new_id = int(payload["new_socket_id"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolViolation(f"AVAILABLE without new_socket_id: {payload!r}") from e
        return cls(base.local_addr, base.local_port, base.remote_addr, base.remote_port, new_id)

    def to_payload(self) -> Dict[str, Any]:
        d = super().to_payload()
        d["new_socket_id"] = self.new_socket_id
        return d

@dataclass(frozen=True)
class StatusInfo:
    """Opaque status reported by the engine; fields depend on the engine."""
    socket_id: int
    fields: Dict[str, Any]

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)
