"""ProcessResultHandler module."""
import getpass
import logging
import os
import re
import socket
from dataclasses import dataclass
from enum import StrEnum, unique
from typing import Optional

from entities.notification import Notification
from errors import NotificationStateError
from outer_resources.notification_store import NotificationStore
from utils.exit_codes import describe_exit_code, exit_code_for
from utils.timestamp_converters import get_current_time_ms

logger = logging.getLogger(__name__)

EVENT_ID_PATTERN = re.compile(r"Message #(\d+) - Evtid = (\d+)")


@unique
class HandlerState(StrEnum):
    """HandlerState."""

    CREATED = "created"
    RUNNING = "running"
    FINALIZED = "finalized"


def _get_system_user() -> str:
    try:
        return getpass.getuser()
    except (OSError, KeyError):
        return str(os.getuid())


def extract_event_id(output: str) -> Optional[str]:
    """Get BEM event id reported by the notifier, None if there is none."""
    if (match := EVENT_ID_PATTERN.search(output)) is not None:
        return match.group(2)
    return None


class ProcessResultHandler:
    """Collects the outcome of one notifier process into its Notification."""

    @dataclass
    class Context:
        """context."""

        notification_store: NotificationStore

    def __init__(self, notification: Notification, context: Context) -> None:
        """init."""
        self.notification = notification
        self.context = context
        self.state = HandlerState.CREATED
        self._output_chunks: list[str] = []
        self._start_time_ms: Optional[int] = None

    @property
    def start_time_ms(self) -> Optional[int]:
        return self._start_time_ms

    @property
    def output(self) -> str:
        return "".join(self._output_chunks)

    def start(self, command_line: str, now_ms: Optional[int] = None) -> None:
        """Record provenance of the process about to run."""
        if self.state != HandlerState.CREATED:
            raise NotificationStateError(f"Cannot start handler in state {self.state}")

        self._start_time_ms = now_ms if now_ms is not None else get_current_time_ms()
        self.notification.set("command_line", command_line)
        self.notification.set("system_user", _get_system_user())
        self.notification.set("system_host_name", socket.gethostname())
        self.state = HandlerState.RUNNING

    def add_output(self, chunk: str) -> "ProcessResultHandler":
        """Append process output in arrival order."""
        if self.state != HandlerState.RUNNING:
            raise NotificationStateError(f"Cannot add output in state {self.state}")
        self._output_chunks.append(chunk)
        return self

    async def finish(
            self,
            exit_code: Optional[int],
            term_signal: Optional[int],
            pid: Optional[int],
            now_ms: Optional[int] = None,
    ) -> Notification:
        """Finalize and persist the notification, exactly once."""
        if self.state != HandlerState.RUNNING:
            raise NotificationStateError(f"Cannot finish handler in state {self.state}")
        self.state = HandlerState.FINALIZED

        if now_ms is None:
            now_ms = get_current_time_ms()

        n = self.notification
        output = self.output
        n.set("pid", pid)
        n.set("ts_notification", self._start_time_ms)
        n.set("duration_ms", now_ms - self._start_time_ms)
        n.set("exit_code", exit_code_for(exit_code, term_signal))
        n.set("output", output)
        n.set("bem_event_id", extract_event_id(output))

        logger.info(
            f"Notification for {n.get('host_name')}!{n.get('object_name')} finished in {n.get('duration_ms')}ms: "
            f"{n.get('exit_code')} - {describe_exit_code(n.get('exit_code'))}, event id {n.get('bem_event_id')}"
        )
        await self.context.notification_store.insert(n)
        return n
