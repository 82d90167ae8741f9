
from __future__ import annotations
import threading
from queue import Queue, Empty
from typing import Callable, List, Optional

from ..codecs import Codec
from ..message import Message
from ..transport import Transport
from ..wire import pack_frame, unpack_frame

class InMemoryTransport(Transport):
    """Transport inside one process.

    Socket side:  send() a command, recv() an indication.
    Engine side:  attach_engine() to get commands pushed synchronously, or
                  poll next_command(); deliver() queues an indication.

    With a codec every message is packed and unpacked on the way through,
    so both ends only ever see what survives the wire format.
    """

    def __init__(self, codec: Optional[Codec] = None, *, record: bool = False, **kwargs):
        self.codec = codec
        self._commands: "Queue[Message]" = Queue()
        self._indications: "Queue[Message]" = Queue()
        self._engine: Optional[Callable[[Message], None]] = None
        self._lock = threading.Lock()
        self._running = True
        self.record = record
        self.sent: List[Message] = []   # every command seen, in order; only with record=True

    def start(self) -> None:
        self._running = True

    def stop(self) -> None:
        self._running = False

    def _through_wire(self, msg: Message) -> Message:
        if self.codec is None:
            return msg
        return unpack_frame(pack_frame(msg, self.codec), self.codec)

    # ---- socket side ----
    def send(self, msg: Message) -> None:
        if not self._running:
            raise RuntimeError("InMemoryTransport: send() on a stopped transport")
        msg = self._through_wire(msg)
        with self._lock:
            if self.record:
                self.sent.append(msg)
            engine = self._engine
        if engine is not None:
            engine(msg)
        else:
            self._commands.put(msg)

    def recv(self, timeout: Optional[float] = None) -> Optional[Message]:
        try:
            if timeout is not None and timeout <= 0:
                return self._indications.get_nowait()
            return self._indications.get(timeout=timeout)
        except Empty:
            return None

    # ---- engine side ----
    def attach_engine(self, handler: Optional[Callable[[Message], None]]) -> None:
        with self._lock:
            self._engine = handler
        # flush whatever was queued before the engine showed up
        while handler is not None:
            try:
                handler(self._commands.get_nowait())
            except Empty:
                break

    def next_command(self, timeout: Optional[float] = 0) -> Optional[Message]:
        try:
            if timeout is not None and timeout <= 0:
                return self._commands.get_nowait()
            return self._commands.get(timeout=timeout)
        except Empty:
            return None

    def deliver(self, msg: Message) -> None:
        self._indications.put(self._through_wire(msg))
