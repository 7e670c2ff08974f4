"""Interrupt signal protocol: a polled boolean set by the surrounding UI/CLI."""

from typing import Protocol


class InterruptSignalProtocol(Protocol):
    def is_interrupted(self) -> bool: ...
