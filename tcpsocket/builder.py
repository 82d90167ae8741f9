from __future__ import annotations
from typing import Optional, Dict, Any

from .message import (
    Envelope, Message, MsgType, CommandKind, IndicationKind, FAILURE_KINDS,
    PROTOCOL_TCP, ConnectInfo, AvailableInfo,
)

class MessageBuilder:
    """
    Builder that always produces a valid Message for one socket id.
     - Command methods are what a TcpSocket emits towards the engine
     - Indication methods are what an engine (or a test) sends back
    build() refuses messages with no kind, and SEND/DATA without bytes.
    """
    def __init__(self, socket_id: int, protocol: str = PROTOCOL_TCP):
        self._env: Dict[str, Any] = {
            "type":      None,
            "kind":      None,
            "socket_id": socket_id,
            "protocol":  protocol,
            "name":      "",
            "payload":   {},
        }
        self._binary: Optional[bytes] = None

    def _set(self, type: MsgType, kind, name: str, payload: Optional[Dict[str, Any]] = None):
        self._env["type"]    = type
        self._env["kind"]    = kind
        self._env["name"]    = name
        self._env["payload"] = payload or {}
        return self

    # ---- commands ----
    def open_passive(self, local_addr: Optional[str], local_port: int, fork: bool, algorithm_class: str = ""):
        return self._set(MsgType.COMMAND, CommandKind.OPEN_PASSIVE, "PassiveOPEN", {
            "local_addr":      local_addr,
            "local_port":      local_port,
            "fork":            bool(fork),
            "algorithm_class": algorithm_class,
        })

    def open_active(self, local_addr: Optional[str], local_port: int,
                    remote_addr: Optional[str], remote_port: int, algorithm_class: str = ""):
        return self._set(MsgType.COMMAND, CommandKind.OPEN_ACTIVE, "ActiveOPEN", {
            "local_addr":      local_addr,
            "local_port":      local_port,
            "remote_addr":     remote_addr,
            "remote_port":     remote_port,
            "algorithm_class": algorithm_class,
        })

    def accept(self):
        return self._set(MsgType.COMMAND, CommandKind.ACCEPT, "ACCEPT")

    def send(self, data: bytes):
        self._set(MsgType.COMMAND, CommandKind.SEND, "SEND")
        return self.binary(data)

    def close(self):
        return self._set(MsgType.COMMAND, CommandKind.CLOSE, "CLOSE")

    def abort(self):
        return self._set(MsgType.COMMAND, CommandKind.ABORT, "ABORT")

    def status(self):
        return self._set(MsgType.COMMAND, CommandKind.STATUS, "STATUS")

    # ---- indications ----
    def data(self, data: bytes, urgent: bool = False):
        kind = IndicationKind.URGENT_DATA if urgent else IndicationKind.DATA
        self._set(MsgType.INDICATION, kind, "URGENT_DATA" if urgent else "DATA")
        return self.binary(data)

    def available(self, info: AvailableInfo):
        return self._set(MsgType.INDICATION, IndicationKind.AVAILABLE, "AVAILABLE", info.to_payload())

    def established(self, info: ConnectInfo):
        return self._set(MsgType.INDICATION, IndicationKind.ESTABLISHED, "ESTABLISHED", info.to_payload())

    def peer_closed(self):
        return self._set(MsgType.INDICATION, IndicationKind.PEER_CLOSED, "PEER_CLOSED")

    def closed(self):
        return self._set(MsgType.INDICATION, IndicationKind.CLOSED, "CLOSED")

    def failure(self, kind: IndicationKind, reason: Optional[str] = None):
        if kind not in FAILURE_KINDS:
            raise ValueError(f"{kind} is not a failure indication")
        payload = {"reason": reason} if reason else {}
        return self._set(MsgType.INDICATION, kind, str(kind), payload)

    def status_info(self, fields: Dict[str, Any]):
        return self._set(MsgType.INDICATION, IndicationKind.STATUS, "STATUS", dict(fields))

    # ---- generic ----
    def to(self, socket_id: int):
        self._env["socket_id"] = socket_id
        return self

    def binary(self, data: bytes):
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"payload must be bytes-like, got {type(data).__name__}")
        self._binary = bytes(data)
        return self

    def build(self) -> Message:
        if self._env["kind"] is None:
            raise ValueError("No message kind set; call a command or indication method first.")
        if self._env["kind"] in {CommandKind.SEND, IndicationKind.DATA, IndicationKind.URGENT_DATA} \
                and self._binary is None:
            raise ValueError(f"{self._env['kind']} requires a binary payload.")
        if not isinstance(self._env["socket_id"], int):
            raise ValueError("socket_id must be an int.")
        return Message(Envelope(**self._env), self._binary)
