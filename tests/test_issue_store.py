import os
import sys
from contextlib import asynccontextmanager
from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.exc import IntegrityError, OperationalError

sys.path.insert(0, os.path.abspath(os.path.join(__file__, "..", "..", "source")))

from entities.cell_config import RuleCellConfig
from entities.issue import Issue
from entities.monitoring_problem_row import MonitoringProblemRow, ObjectType
from errors import IdentityConflictError, StoreIOError
from outer_resources.issue_store import IssueStore
from utils.checksum import compute_identity


def rows_result(*rows: dict) -> MagicMock:
    result = MagicMock()
    result.mappings.return_value.all.return_value = list(rows)
    return result


def write_result(rowcount: int = 1) -> MagicMock:
    return MagicMock(rowcount=rowcount)


def problem_row(state: str = "CRITICAL", hard_state: int = 2) -> MonitoringProblemRow:
    return MonitoringProblemRow(
        id=10,
        object_type=ObjectType.SERVICE,
        host_id=2,
        host_name="web1",
        service_name="http",
        state_type="HARD",
        state=state,
        hard_state=hard_state,
        is_acknowledged=0,
        is_in_downtime=0,
        output="HTTP CRITICAL",
        vars={"host.vars.location": "dc1"},
    )


def stored_issue_row(**overrides) -> dict:
    row = {
        "identity": compute_identity("cell", "web1", "http"),
        "cell_name": "cell",
        "host_name": "web1",
        "object_name": "http",
        "is_relevant": "y",
        "severity": 2,
        "worst_severity": 5,
        "attributes": '{"host": "web1", "object": "http"}',
        "ts_first_notification": 1000,
        "ts_last_notification": 2000,
        "ts_next_notification": 3000,
        "notification_count": 2,
    }
    row.update(overrides)
    return row


class TestIssueStore(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.session = MagicMock()
        self.session.execute = AsyncMock()

        @asynccontextmanager
        async def ensure_session():
            yield self.session

        self.issue_store = IssueStore(
            context=IssueStore.Context(database_session_maker=MagicMock(ensure_session=ensure_session)),
        )
        self.cell = RuleCellConfig(
            config=RuleCellConfig.Config(name="cell"),
            context=RuleCellConfig.Context(database_session_maker=MagicMock()),
        )

    async def test_reconcile(self) -> None:
        with self.subTest("new issue"):
            self.session.execute.reset_mock()
            self.session.execute.side_effect = [rows_result()]

            issue = await self.issue_store.reconcile(problem_row(), self.cell)

            self.assertTrue(issue.is_new())
            self.assertEqual(issue.identity, compute_identity("cell", "web1", "http"))
            self.assertEqual(issue.get("severity"), 4)
            self.assertEqual(issue.get("worst_severity"), 4)
            self.assertTrue(issue.is_relevant())
            self.assertEqual(issue.get_attributes(), {"host": "web1", "object": "http"})
            self.assertIsNone(issue.get("notification_count"))

        with self.subTest("existing issue keeps notification history"):
            self.session.execute.reset_mock()
            self.session.execute.side_effect = [rows_result(stored_issue_row())]

            issue = await self.issue_store.reconcile(problem_row(), self.cell)

            self.assertFalse(issue.is_new())
            self.assertEqual(issue.get("ts_first_notification"), 1000)
            self.assertEqual(issue.get("ts_last_notification"), 2000)
            self.assertEqual(issue.get("ts_next_notification"), 3000)
            self.assertEqual(issue.get("notification_count"), 2)
            self.assertEqual(issue.get("worst_severity"), 5)
            self.assertEqual(issue.modified_fields(), frozenset({"severity"}))

        with self.subTest("recovered object is not relevant"):
            self.session.execute.reset_mock()
            self.session.execute.side_effect = [rows_result(stored_issue_row())]

            issue = await self.issue_store.reconcile(problem_row(state="OK", hard_state=0), self.cell)

            self.assertFalse(issue.is_relevant())
            self.assertEqual(issue.get("severity"), 0)
            self.assertEqual(issue.get("worst_severity"), 5)

        with self.subTest("stored row of another object"):
            self.session.execute.reset_mock()
            self.session.execute.side_effect = [rows_result(stored_issue_row(host_name="web9"))]

            with self.assertRaises(IdentityConflictError):
                await self.issue_store.reconcile(problem_row(), self.cell)

    async def test_store(self) -> None:
        with self.subTest("insert new issue"):
            self.session.execute.reset_mock()
            self.session.execute.side_effect = [rows_result(), write_result()]
            issue = await self.issue_store.reconcile(problem_row(), self.cell)

            self.assertTrue(await self.issue_store.store(issue))

            self.assertEqual(self.session.execute.await_count, 2)
            statement = self.session.execute.await_args.args[0]
            self.assertTrue(statement.is_insert)
            self.assertFalse(issue.is_new())
            self.assertEqual(issue.modified_fields(), frozenset())

        with self.subTest("second store is a no-op"):
            self.session.execute.reset_mock()

            self.assertFalse(await self.issue_store.store(issue))

            self.session.execute.assert_not_awaited()

        with self.subTest("update only modified fields"):
            self.session.execute.reset_mock()
            self.session.execute.side_effect = [write_result()]
            issue = Issue.from_db_row(stored_issue_row())
            issue.set("severity", 5)

            self.assertTrue(await self.issue_store.store(issue))

            statement = self.session.execute.await_args.args[0]
            self.assertTrue(statement.is_update)
            self.assertEqual(set(statement.compile().params) - {"identity_1"}, {"severity"})

        with self.subTest("failed update keeps issue dirty"):
            self.session.execute.reset_mock()
            self.session.execute.side_effect = [OperationalError("UPDATE", {}, Exception("gone"))]
            issue = Issue.from_db_row(stored_issue_row())
            issue.set("severity", 5)

            with self.assertRaises(StoreIOError):
                await self.issue_store.store(issue)

            self.assertEqual(issue.modified_fields(), frozenset({"severity"}))
            self.assertFalse(issue.is_new())

        with self.subTest("failed insert keeps issue new"):
            self.session.execute.reset_mock()
            self.session.execute.side_effect = [rows_result(), OperationalError("INSERT", {}, Exception("gone"))]
            issue = await self.issue_store.reconcile(problem_row(), self.cell)

            with self.assertRaises(StoreIOError):
                await self.issue_store.store(issue)

            self.assertTrue(issue.is_new())
            self.assertTrue(issue.has_been_modified())

        with self.subTest("concurrent insert falls back to update"):
            self.session.execute.reset_mock()
            self.session.execute.side_effect = [
                rows_result(),
                IntegrityError("INSERT", {}, Exception("duplicate key")),
                rows_result(stored_issue_row()),
                write_result(),
            ]
            issue = await self.issue_store.reconcile(problem_row(), self.cell)

            self.assertTrue(await self.issue_store.store(issue))

            self.assertTrue(self.session.execute.await_args.args[0].is_update)
            self.assertFalse(issue.is_new())

        with self.subTest("stale identity is never stored"):
            self.session.execute.reset_mock()
            issue = Issue.from_db_row(stored_issue_row())
            issue.set("host_name", "web2")

            with self.assertRaises(IdentityConflictError):
                await self.issue_store.store(issue)

            self.session.execute.assert_not_awaited()

    async def test_delete(self) -> None:
        self.session.execute.reset_mock()
        self.session.execute.side_effect = [write_result(), write_result()]
        issue = Issue.from_db_row(stored_issue_row())

        await self.issue_store.delete(issue)

        self.assertTrue(issue.is_new())
        self.assertEqual(
            issue.modified_fields(),
            frozenset(name for name, value in stored_issue_row().items() if value is not None),
        )

        await self.issue_store.store(issue)

        self.assertTrue(self.session.execute.await_args.args[0].is_insert)

    async def test_fetch_due(self) -> None:
        self.session.execute.reset_mock()
        self.session.execute.side_effect = [rows_result(stored_issue_row())]

        issues = await self.issue_store.fetch_due("cell", 3000)

        self.assertEqual(len(issues), 1)
        self.assertFalse(issues[0].is_new())
        self.assertIn("ts_next_notification", str(self.session.execute.await_args.args[0]))

    async def test_load(self) -> None:
        with self.subTest("stored"):
            self.session.execute.reset_mock()
            self.session.execute.side_effect = [rows_result(stored_issue_row())]

            issue = await self.issue_store.load(self.cell, "web1", "http")

            self.assertEqual(issue.get("notification_count"), 2)

        with self.subTest("missing"):
            self.session.execute.reset_mock()
            self.session.execute.side_effect = [rows_result()]

            self.assertIsNone(await self.issue_store.load(self.cell, "web1", "ftp"))
