"""Controller module."""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import NoReturn, Optional

from entities.cell_config import CellConfig
from entities.issue import Issue
from entities.notification import Notification
from notifiers.notification_dispatcher import NotificationDispatcher
from notifiers.notification_scheduler import NotificationScheduler
from outer_resources.ido_state_fetcher import IdoStateFetcher
from outer_resources.issue_store import IssueStore
from utils.timestamp_converters import get_current_time_ms

logger = logging.getLogger(__name__)


@dataclass
class CellContext:
    """Components bound to one target cell."""

    cell: CellConfig
    issue_store: IssueStore
    notification_dispatcher: NotificationDispatcher


@dataclass
class CycleReport:
    """CycleReport."""

    cell_name: str
    problems: int = 0
    deferred: int = 0
    stored: int = 0
    closed: int = 0
    notifications: list[Notification] = field(default_factory=list)
    failed_notifications: int = 0


class Controller:
    """Main logic class."""

    @dataclass
    class Config:
        """config."""

        cycle_interval_sec: int = 60

    @dataclass
    class Context:
        """context."""

        ido_state_fetcher: IdoStateFetcher
        notification_scheduler: NotificationScheduler
        cells: list[CellContext]

    def __init__(self, config: Config, context: Context) -> None:
        """init."""
        self.config = config
        self.context = context
        logger.info(f"{type(self).__name__} inited")

    async def run_forever(self) -> NoReturn:
        """Reconcile all cells periodically."""
        while True:
            for cell_context in self.context.cells:
                try:
                    await self.run_cycle(cell_context)
                except Exception as e:
                    logger.error(f"Cycle for cell {cell_context.cell.name} failed: {repr(e)}")
            await asyncio.sleep(self.config.cycle_interval_sec)

    async def run_cycle(self, cell_context: CellContext, now_ms: Optional[int] = None) -> CycleReport:
        """Fetch problems, reconcile issues and notify about the due ones."""
        if now_ms is None:
            now_ms = get_current_time_ms()
        report = CycleReport(cell_name=cell_context.cell.name)

        seen_identities = await self._reconcile_problems(cell_context, now_ms, report)
        await self._reconcile_vanished_problems(cell_context, seen_identities, report)
        await self._dispatch_due_issues(cell_context, now_ms, report)

        logger.info(
            f"Cell {report.cell_name}: {report.problems} problems, {report.deferred} deferred, "
            f"{report.stored} stored, {report.closed} closed, {len(report.notifications)} notified, "
            f"{report.failed_notifications} notifications failed"
        )
        return report

    async def _reconcile_problems(self, cell_context: CellContext, now_ms: int, report: CycleReport) -> set[bytes]:
        """Create or update an issue per current problem."""
        cell = cell_context.cell
        problems = await self.context.ido_state_fetcher.fetch_problems(cell)
        report.problems = len(problems)

        seen_identities = set()
        for problem in problems.values():
            if not problem.vars_loaded:
                logger.debug(f"Deferring {problem.host_name}!{problem.object_name}, custom variables are unknown")
                report.deferred += 1
                continue

            issue = await cell_context.issue_store.reconcile(problem, cell)
            seen_identities.add(issue.identity)
            if issue.is_relevant() and issue.get("ts_next_notification") is None:
                self.context.notification_scheduler.schedule_next(issue, now_ms)
            if await cell_context.issue_store.store(issue):
                report.stored += 1
        return seen_identities

    async def _reconcile_vanished_problems(
            self,
            cell_context: CellContext,
            seen_identities: set[bytes],
            report: CycleReport,
    ) -> None:
        """Re-check stored issues without a current problem, closing the ones no longer wanted."""
        cell = cell_context.cell
        fetcher = self.context.ido_state_fetcher
        for issue in await cell_context.issue_store.fetch_for_cell(cell.name):
            if issue.identity in seen_identities:
                continue

            host_name = issue.get("host_name")
            service_name = self._service_name_of(issue)
            state_row = await fetcher.get_state_row_for(host_name, service_name)
            if state_row is None:
                state_row = fetcher.get_empty_state_row_for(host_name, service_name)
            elif not state_row.vars_loaded:
                report.deferred += 1
                continue

            current = await cell_context.issue_store.reconcile(state_row, cell)
            if current.identity != issue.identity or not current.is_relevant():
                logger.info(f"Closing issue {host_name}!{issue.get('object_name')}: {state_row.output}")
                await cell_context.issue_store.delete(issue)
                report.closed += 1
            elif await cell_context.issue_store.store(current):
                report.stored += 1

    async def _dispatch_due_issues(self, cell_context: CellContext, now_ms: int, report: CycleReport) -> None:
        """Notify concurrently about all due issues."""
        scheduler = self.context.notification_scheduler
        due_issues = [
            issue for issue in await cell_context.issue_store.fetch_due(cell_context.cell.name, now_ms)
            if scheduler.is_due(issue, now_ms)
        ]
        if not due_issues:
            return

        results = await asyncio.gather(
            *(self._notify(cell_context, issue) for issue in due_issues),
            return_exceptions=True,
        )
        for issue, result in zip(due_issues, results):
            if isinstance(result, BaseException):
                logger.error(f"Notification for {issue.get('host_name')}!{issue.get('object_name')} failed: "
                             f"{repr(result)}")
                report.failed_notifications += 1
            else:
                report.notifications.append(result)

    async def _notify(self, cell_context: CellContext, issue: Issue) -> Notification:
        notification = await cell_context.notification_dispatcher.dispatch(issue)
        self.context.notification_scheduler.record_notification(issue, notification)
        await cell_context.issue_store.store(issue)
        return notification

    @staticmethod
    def _service_name_of(issue: Issue) -> Optional[str]:
        """Host issues use the host name as object name."""
        object_name = issue.get("object_name")
        return None if object_name == issue.get("host_name") else object_name
