"""IssueStore module."""
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from entities.cell_config import HOST_FIELD, OBJECT_FIELD, CellConfig
from entities.issue import NOT_RELEVANT, RELEVANT, Issue, bem_issue_table
from entities.monitoring_problem_row import MonitoringProblemRow
from errors import IdentityConflictError, StoreIOError
from outer_resources.database_connector import DatabaseSessionMaker
from utils.checksum import compute_identity

logger = logging.getLogger(__name__)

_IDENTITY_FIELDS = ("cell_name", "host_name", "object_name")


class IssueStore:
    """Loads and persists Issues keyed by their identity."""

    @dataclass
    class Context:
        """context."""

        database_session_maker: DatabaseSessionMaker

    def __init__(self, context: Context) -> None:
        """init."""
        self.context = context
        self.ensure_session = self.context.database_session_maker.ensure_session
        logger.info(f"{type(self).__name__} inited")

    # SELECT

    async def reconcile(self, problem_row: MonitoringProblemRow, cell: CellConfig) -> Issue:
        """Get issue for a problem row with freshly computed fields.

        An already stored issue keeps its notification history, only the computed fields are
        overlaid onto it. Otherwise a new, not yet persisted issue is returned.
        """
        computed = Issue()
        self._apply_problem_row(computed, problem_row, cell)

        stored_row = await self._select_row(computed.identity)
        if stored_row is None:
            return computed

        self._assert_same_object(stored_row, computed)
        issue = Issue.from_db_row(stored_row)
        overlay = computed.modified_properties()
        overlay.pop("worst_severity", None)
        issue.set_properties(overlay)
        issue.raise_worst_severity()
        return issue

    async def load(self, cell: CellConfig, host: str, object_name: str) -> Optional[Issue]:
        """Load stored issue, None if there is none."""
        row = await self._select_row(compute_identity(cell.name, host, object_name))
        return Issue.from_db_row(row) if row is not None else None

    async def fetch_for_cell(self, cell_name: str) -> list[Issue]:
        """Load all stored issues of a cell."""
        query = select(bem_issue_table).where(bem_issue_table.c.cell_name == cell_name)
        return [Issue.from_db_row(row) for row in await self._fetch_all(query)]

    async def fetch_due(self, cell_name: str, as_of_ms: int) -> list[Issue]:
        """Load relevant issues whose next notification is due."""
        query = select(
            bem_issue_table
        ).where(
            bem_issue_table.c.cell_name == cell_name,
            bem_issue_table.c.is_relevant == RELEVANT,
            bem_issue_table.c.ts_next_notification <= as_of_ms,
        ).order_by(
            bem_issue_table.c.ts_next_notification
        )
        return [Issue.from_db_row(row) for row in await self._fetch_all(query)]

    # INSERT / UPDATE

    async def store(self, issue: Issue) -> bool:
        """Write modified fields, returns whether anything was written."""
        if not issue.has_been_modified():
            return False

        self._assert_identity_is_current(issue)
        if issue.is_new():
            await self._insert(issue)
        else:
            await self._update(issue, issue.modified_properties())

        issue.persisted = True
        issue.mark_unmodified()
        return True

    async def _insert(self, issue: Issue) -> None:
        query = insert(bem_issue_table).values(issue.all_fields_for_persistence())
        try:
            async with self.ensure_session() as session:
                await session.execute(query)
        except IntegrityError:
            # Another dispatcher inserted the same identity first
            logger.info(f"Issue {issue.identity.hex()} inserted concurrently, updating instead")
            stored_row = await self._select_row(issue.identity)
            if stored_row is None:
                raise StoreIOError(f"Issue {issue.identity.hex()} vanished after duplicate insert")
            self._assert_same_object(stored_row, issue)
            await self._update(issue, issue.all_fields_for_persistence())
        except SQLAlchemyError as e:
            raise StoreIOError(f"Issue insert failed: {repr(e)}") from e

    async def _update(self, issue: Issue, properties: Mapping[str, Any]) -> None:
        query = update(
            bem_issue_table
        ).where(
            bem_issue_table.c.identity == issue.identity
        ).values(
            {name: value for name, value in properties.items() if name != "identity"}
        )
        try:
            async with self.ensure_session() as session:
                result = await session.execute(query)
        except SQLAlchemyError as e:
            raise StoreIOError(f"Issue update failed: {repr(e)}") from e
        if result.rowcount == 0:
            raise StoreIOError(f"Issue {issue.identity.hex()} to update does not exist")

    # DELETE

    async def delete(self, issue: Issue) -> None:
        """Delete stored issue, keeping its values dirty so that it can be stored again."""
        query = delete(bem_issue_table).where(bem_issue_table.c.identity == issue.identity)
        try:
            async with self.ensure_session() as session:
                await session.execute(query)
        except SQLAlchemyError as e:
            raise StoreIOError(f"Issue delete failed: {repr(e)}") from e

        issue.persisted = False
        for name, value in issue.all_fields_for_persistence().items():
            if value != issue.default_properties[name]:
                issue.mark_modified(name)

    @staticmethod
    def is_relevant(issue: Issue) -> bool:
        """Check whether issue should be escalated."""
        return issue.is_relevant()

    # HELPERS

    @staticmethod
    def _apply_problem_row(issue: Issue, problem_row: MonitoringProblemRow, cell: CellConfig) -> None:
        fields = cell.extract_fields(problem_row)
        issue.set("cell_name", cell.name)
        issue.set("host_name", fields[HOST_FIELD])
        issue.set("object_name", fields[OBJECT_FIELD])
        issue.set("severity", cell.calculate_severity_for_object(problem_row))
        issue.set_attributes(fields)
        issue.recalculate_identity()
        issue.raise_worst_severity()
        issue.set("is_relevant", RELEVANT if cell.wants_object(problem_row) else NOT_RELEVANT)

    @staticmethod
    def _assert_same_object(stored_row: Mapping[str, Any], issue: Issue) -> None:
        for name in _IDENTITY_FIELDS:
            if stored_row[name] != issue.get(name):
                raise IdentityConflictError(
                    f"Issue {issue.identity.hex()} is stored for "
                    f"{'!'.join(str(stored_row[field]) for field in _IDENTITY_FIELDS)}, "
                    f"not for {'!'.join(str(issue.get(field)) for field in _IDENTITY_FIELDS)}"
                )

    @staticmethod
    def _assert_identity_is_current(issue: Issue) -> None:
        expected = compute_identity(*(issue.get(name) for name in _IDENTITY_FIELDS))
        if issue.identity != expected:
            raise IdentityConflictError(
                f"Issue {'!'.join(str(issue.get(name)) for name in _IDENTITY_FIELDS)} carries a stale identity"
            )

    async def _select_row(self, identity: bytes) -> Optional[Mapping[str, Any]]:
        query = select(bem_issue_table).where(bem_issue_table.c.identity == identity)
        rows = await self._fetch_all(query)
        return rows[0] if rows else None

    async def _fetch_all(self, query) -> list[Mapping[str, Any]]:
        try:
            async with self.ensure_session() as session:
                return list((await session.execute(query)).mappings().all())
        except SQLAlchemyError as e:
            raise StoreIOError(f"Issue select failed: {repr(e)}") from e
