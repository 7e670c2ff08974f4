"""
Interrupt Service

Process-wide cooperative cancellation flag. The surrounding CLI sets it
(e.g. on Ctrl+C); the execution loop only polls it at the top of each
iteration and before each action.
"""

import threading

import structlog


class InterruptService:
    def __init__(self):
        self._event = threading.Event()
        self.logger = structlog.get_logger().bind(component="interrupt_service")

    def start_task(self) -> None:
        """Clear any interrupt left over from a previous task."""
        self._event.clear()

    reset = start_task

    def interrupt(self) -> None:
        self.logger.info("interrupt_requested")
        self._event.set()

    def is_interrupted(self) -> bool:
        return self._event.is_set()
