from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional

from .message import Message

class Transport(ABC):
    """Channel between sockets and the engine.

    Commands go out through send(); indications come back through recv().
    Indications for one socket id must come out of recv() in the order the
    engine produced them.
    """

    @abstractmethod
    def start(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def send(self, msg: Message) -> None:
        """Hand one command to the engine. Must not block."""
        raise NotImplementedError

    @abstractmethod
    def recv(self, timeout: Optional[float] = None) -> Optional[Message]:
        """Next indication, or None if nothing arrived within timeout."""
        raise NotImplementedError
