
from __future__ import annotations
from typing import Any, Dict, List, Protocol as TypingProtocol

import json

import msgpack

class Codec(TypingProtocol):
    """Encodes a frame header (a plain dict) to bytes and back."""
    name: str
    def dumps(self, header: Dict[str, Any]) -> bytes: ...
    def loads(self, data: bytes) -> Dict[str, Any]: ...

class JSONCodec:
    name = "json"
    def dumps(self, header: Dict[str, Any]) -> bytes:
        return json.dumps(header, separators=(",", ":")).encode("utf-8")
    def loads(self, data: bytes) -> Dict[str, Any]:
        return json.loads(data.decode("utf-8"))

class MsgPackCodec:
    """Compact headers; status payloads may carry bytes values, which JSON cannot."""
    name = "msgpack"
    def dumps(self, header: Dict[str, Any]) -> bytes:
        return msgpack.packb(header, use_bin_type=True)
    def loads(self, data: bytes) -> Dict[str, Any]:
        return msgpack.unpackb(data, raw=False, strict_map_key=False)

class Codecs:
    _registry: Dict[str, Codec] = {c.name: c for c in (JSONCodec(), MsgPackCodec())}

    @classmethod
    def get(cls, name: str) -> Codec:
        try:
            return cls._registry[name]
        except KeyError:
            raise ValueError(f"Unknown codec: {name}") from None

