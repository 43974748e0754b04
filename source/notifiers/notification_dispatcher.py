"""NotificationDispatcher module."""
import asyncio
import codecs
import logging
import shlex
from contextlib import suppress
from dataclasses import dataclass
from typing import Optional

from entities.issue import Issue
from entities.notification import Notification
from errors import ProcessDispatchError
from notifiers.process_result_handler import ProcessResultHandler
from outer_resources.notification_store import NotificationStore

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Runs the external notifier for an issue and records its outcome."""

    @dataclass
    class Config:
        """config."""

        command: list[str]
        timeout_sec: float = 60
        kill_grace_sec: float = 5
        max_parallel: int = 10
        read_chunk_size: int = 4096

    @dataclass
    class Context:
        """context."""

        notification_store: NotificationStore

    def __init__(self, config: Config, context: Context) -> None:
        """init."""
        self.config = config
        self.context = context
        self._semaphore = asyncio.Semaphore(config.max_parallel)
        logger.info(f"{type(self).__name__} inited")

    def build_command(self, issue: Issue) -> list[str]:
        """Fill notifier argv template with issue values."""
        values = {
            "cell_name": issue.get("cell_name"),
            "host_name": issue.get("host_name"),
            "object_name": issue.get("object_name"),
            "severity": issue.get("severity"),
            "slot_set": ";".join(f"{key}={value}" for key, value in issue.get_attributes().items()),
        }
        try:
            return [part.format(**values) for part in self.config.command]
        except (KeyError, IndexError, ValueError) as e:
            raise ProcessDispatchError(f"Invalid notifier command template: {repr(e)}") from e

    async def dispatch(self, issue: Issue) -> Notification:
        """Notify about issue, the returned notification is already stored."""
        async with self._semaphore:
            handler = ProcessResultHandler(
                Notification.for_issue(issue),
                ProcessResultHandler.Context(notification_store=self.context.notification_store),
            )
            try:
                args = self.build_command(issue)
            except ProcessDispatchError as e:
                handler.start(shlex.join(self.config.command))
                return await self._finish_failed(handler, e)

            handler.start(shlex.join(args))
            try:
                process = await self._spawn(args)
            except ProcessDispatchError as e:
                return await self._finish_failed(handler, e)

            try:
                exit_code, term_signal = await self._watch(process, handler)
            except Exception as e:
                logger.error(f"Watching notifier process {process.pid} failed: {repr(e)}")
                await self._terminate(process)
                await handler.finish(None, None, process.pid)
                raise
            return await handler.finish(exit_code, term_signal, process.pid)

    async def _spawn(self, args: list[str]) -> asyncio.subprocess.Process:
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except (OSError, ValueError) as e:
            raise ProcessDispatchError(f"Cannot start {args[0] if args else 'empty command'}: {repr(e)}") from e
        logger.debug(f"Started notifier process {process.pid}: {shlex.join(args)}")
        return process

    async def _watch(
            self,
            process: asyncio.subprocess.Process,
            handler: ProcessResultHandler,
    ) -> tuple[Optional[int], Optional[int]]:
        """Wait for process exit, returns (exit_code, term_signal)."""
        try:
            await asyncio.wait_for(self._pump_output(process, handler), self.config.timeout_sec)
        except asyncio.TimeoutError:
            logger.warning(f"Notifier process {process.pid} exceeded {self.config.timeout_sec}s, terminating")
            await self._terminate(process)

        if process.returncode is not None and process.returncode < 0:
            return None, -process.returncode
        return process.returncode, None

    async def _pump_output(self, process: asyncio.subprocess.Process, handler: ProcessResultHandler) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while chunk := await process.stdout.read(self.config.read_chunk_size):
            if text := decoder.decode(chunk):
                handler.add_output(text)
        if text := decoder.decode(b"", final=True):
            handler.add_output(text)
        await process.wait()

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        with suppress(ProcessLookupError):
            process.terminate()
        try:
            await asyncio.wait_for(process.wait(), self.config.kill_grace_sec)
        except asyncio.TimeoutError:
            with suppress(ProcessLookupError):
                process.kill()
            await process.wait()

    @staticmethod
    async def _finish_failed(handler: ProcessResultHandler, error: ProcessDispatchError) -> Notification:
        logger.error(f"Notifier dispatch failed: {repr(error)}")
        handler.add_output(str(error))
        return await handler.finish(None, None, None)
