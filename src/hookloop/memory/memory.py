"""Append-only conversation memory.

The agent reads the full history from memory to build model input and appends every message it produces: the
caller's input, reasoning and summary messages, tool results, and messages injected through goto reasoning. Because
tool results are stored as soon as each tool finishes, a stopped invocation can be resumed from memory alone.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod

from ..types.content import Message, Messages

logger = logging.getLogger(__name__)


class Memory(ABC):
    """Abstract base class for conversation memory."""

    @abstractmethod
    # pragma: no cover
    def add_message(self, message: Message) -> None:
        """Append a message to the end of the conversation.

        Args:
            message: The message to store.
        """
        pass

    @abstractmethod
    # pragma: no cover
    def get_messages(self) -> Messages:
        """Return the stored conversation, oldest first.

        Returns:
            A list the caller may modify without affecting the stored conversation.
        """
        pass

    @abstractmethod
    # pragma: no cover
    def clear(self) -> None:
        """Remove all messages."""
        pass

    def size(self) -> int:
        """Number of stored messages."""
        return len(self.get_messages())


class InMemoryMemory(Memory):
    """Memory that keeps the conversation in a process-local list."""

    def __init__(self, messages: Messages | None = None) -> None:
        """Initialize the memory.

        Args:
            messages: Initial conversation to pre-load.
        """
        self._lock = threading.Lock()
        self._messages: Messages = copy.deepcopy(messages) if messages else []

    def add_message(self, message: Message) -> None:
        """Append a copy of the message to the end of the conversation."""
        with self._lock:
            self._messages.append(copy.deepcopy(message))

        logger.debug("role=<%s>, size=<%d> | message added to memory", message.get("role"), len(self._messages))

    def get_messages(self) -> Messages:
        """Return a deep copy of the conversation."""
        with self._lock:
            return copy.deepcopy(self._messages)

    def clear(self) -> None:
        """Remove all messages."""
        with self._lock:
            self._messages.clear()

    def size(self) -> int:
        """Number of stored messages."""
        with self._lock:
            return len(self._messages)
