
from __future__ import annotations
from typing import Any, Optional, Union

from .runtime import SocketRuntime, NewSocketHook
from .codecs import Codecs
from .transport import Transport

def open_runtime(*,
                 transport: Union[str, Transport] = "loopback",
                 codec: Union[str, Any, None] = "json",
                 algorithm_class: str = "",
                 auto_accept: bool = True,
                 on_new_socket: Optional[NewSocketHook] = None,
                 **transport_kwargs) -> SocketRuntime:
    """
    One-liner factory:
      open_runtime()                                   # in-process loopback engine
      open_runtime(transport="inmemory", codec="msgpack")
      open_runtime(transport=my_transport, algorithm_class="TcpReno")

    - transport: "inmemory" | "loopback" | Transport instance
        "inmemory" leaves the engine side to the caller (transport.attach_engine / next_command)
        "loopback" also attaches a LoopbackEngine, reachable as runtime.engine
    - codec: "json" | "msgpack" | Codec instance | None; in-process transports
      push every message through this frame codec, None skips it
    - algorithm_class: default TCP variant for sockets from runtime.new_socket()
    - auto_accept: accept announced connections as soon as they are available
    - on_new_socket: called with every socket created for a forked connection
    - **transport_kwargs: passed to transport constructor
    """
    # Resolve codec
    if isinstance(codec, str):
        codec_obj = Codecs.get(codec)
    else:
        codec_obj = codec

    # Resolve transport
    engine = None
    if isinstance(transport, str):
        tlabel = transport.lower()
        if tlabel in ("inmemory", "loopback"):
            from .transports.inmemory import InMemoryTransport
            t = InMemoryTransport(codec=codec_obj, **transport_kwargs)
            if tlabel == "loopback":
                from .transports.loopback import LoopbackEngine
                engine = LoopbackEngine(t)
        else:
            raise ValueError(f"Unknown transport label: {transport}")
    else:
        t = transport
        # codec is the caller's business for a ready-made transport

    rt = SocketRuntime(t, algorithm_class=algorithm_class, auto_accept=auto_accept,
                       on_new_socket=on_new_socket)
    rt.engine = engine
    return rt
