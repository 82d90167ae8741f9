from __future__ import annotations
import struct
from typing import Optional

from .codecs import Codec, JSONCodec
from .message import Envelope, Message, MsgType, CommandKind, IndicationKind

# frame = !I header length | codec(header) | optional binary
_LEN = struct.Struct("!I")

class WireError(ValueError):
    """Frame bytes that do not decode to a Message."""

def pack_frame(msg: Message, codec: Optional[Codec] = None) -> bytes:
    codec = codec or JSONCodec()
    env_dict = {
        "type":      str(msg.env.type),
        "kind":      str(msg.env.kind),
        "socket_id": msg.env.socket_id,
        "protocol":  msg.env.protocol,
        "name":      msg.env.name,
        "payload":   msg.env.payload,
        "binary":    msg.binary is not None,
    }
    header = codec.dumps(env_dict)
    frame = _LEN.pack(len(header)) + header
    if msg.binary is None:
        return frame
    return frame + msg.binary

def unpack_frame(frame: bytes, codec: Optional[Codec] = None) -> Message:
    codec = codec or JSONCodec()
    if len(frame) < _LEN.size:
        raise WireError(f"frame too short: {len(frame)} bytes")
    (hlen,) = _LEN.unpack_from(frame, 0)
    end = _LEN.size + hlen
    if end > len(frame):
        raise WireError(f"header length {hlen} exceeds frame of {len(frame)} bytes")

    try:
        env = codec.loads(frame[_LEN.size:end])
        mtype = MsgType(env["type"])
        kind = CommandKind(env["kind"]) if mtype == MsgType.COMMAND else IndicationKind(env["kind"])
        envelope = Envelope(
            type=mtype,
            kind=kind,
            socket_id=int(env["socket_id"]),
            protocol=env["protocol"],
            name=env.get("name", ""),
            payload=env.get("payload") or {},
        )
    except (KeyError, TypeError, ValueError) as e:
        raise WireError(f"malformed frame header: {e}") from e

    binary = frame[end:] if env.get("binary") else None
    return Message(envelope, binary)
