"""IdoStateFetcher module."""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from sqlalchemy import Row, Select, and_, case, literal, null, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import aliased

from entities.cell_config import CellConfig
from entities.ido.custom_variable_status import CustomVariableStatus
from entities.ido.icinga_object import IcingaObject
from entities.ido.object_status import HARD_STATE_TYPE, HostStatus, ServiceStatus
from entities.ido.service import Service
from entities.monitoring_problem_row import (
    HOST_VARS_PREFIX,
    SERVICE_VARS_PREFIX,
    UNCHECKED_HARD_STATE,
    MonitoringProblemRow,
    ObjectType,
)
from errors import EnrichmentQueryError, StoreIOError
from outer_resources.database_connector import DatabaseSessionMaker

logger = logging.getLogger(__name__)

host_object = aliased(IcingaObject, name="ho")
service_object = aliased(IcingaObject, name="so")
host_status = aliased(HostStatus, name="hs")
service_status = aliased(ServiceStatus, name="ss")
service = aliased(Service, name="s")


class IdoStateFetcher:
    """Reads current problem state from the IDO schema."""

    @dataclass
    class Context:
        """context."""

        database_session_maker: DatabaseSessionMaker

    def __init__(self, context: Context) -> None:
        """init."""
        self.context = context
        self.ensure_session = self.context.database_session_maker.ensure_session
        logger.info(f"{type(self).__name__} inited")

    async def fetch_problems(self, cell: CellConfig) -> dict[int, MonitoringProblemRow]:
        """Get unhandled hard problems of hosts and services keyed by object id."""
        rows: dict[int, MonitoringProblemRow] = {}
        for row in await self._fetch_rows(self._select_problem_hosts()):
            rows[row.id] = row
        for row in await self._fetch_rows(self._select_problem_services()):
            rows[row.id] = row

        await self._enrich_rows_with_vars(rows)
        logger.debug(f"Fetched {len(rows)} problems for cell {cell.name}")
        return rows

    async def get_state_row_for(self, host: str, service_name: Optional[str] = None) -> Optional[MonitoringProblemRow]:
        """Get current state of a single host or service, None if it does not exist."""
        if service_name is None:
            query = self._select_hosts().where(host_object.name1 == host)
        else:
            query = self._select_services().where(
                service_object.name1 == host,
                service_object.name2 == service_name,
            )

        rows = await self._fetch_rows(query)
        if not rows:
            return None

        return await self._enrich_row_with_vars(rows[0])

    @staticmethod
    def get_empty_state_row_for(host: str, service_name: Optional[str] = None) -> MonitoringProblemRow:
        """Build healthy placeholder row for an object that vanished from monitoring."""
        if service_name is None:
            object_type = ObjectType.HOST
            state = "UP"
            output = f"{host} no longer exists"
        else:
            object_type = ObjectType.SERVICE
            state = "OK"
            output = f"{service_name} no longer exists on {host}"

        return MonitoringProblemRow(
            id=None,
            object_type=object_type,
            host_id=None,
            host_name=host,
            service_name=service_name,
            state_type="SOFT",
            state=state,
            hard_state=0,
            is_acknowledged=0,
            is_in_downtime=0,
            output=output,
        )

    # QUERIES

    def _select_problem_hosts(self) -> Select:
        return self._select_hosts().where(
            host_status.current_state > 0,
            host_status.state_type == HARD_STATE_TYPE,
            host_status.scheduled_downtime_depth == 0,
            host_status.problem_has_been_acknowledged == 0,
        )

    def _select_problem_services(self) -> Select:
        return self._select_services().where(
            host_status.current_state == 0,
            service_status.state_type == HARD_STATE_TYPE,
            service_status.current_state > 0,
            service_status.scheduled_downtime_depth == 0,
            service_status.problem_has_been_acknowledged == 0,
        )

    def _select_hosts(self) -> Select:
        return select(
            host_object.object_id.label("id"),
            literal(ObjectType.HOST.value).label("object_type"),
            null().label("host_id"),
            host_object.name1.label("host_name"),
            null().label("service_name"),
            self._state_type_column(host_status),
            case(
                (host_status.current_state == 0, "UP"),
                (host_status.current_state == 2, "UNREACHABLE"),
                else_="DOWN",
            ).label("state"),
            self._hard_state_column(host_status),
            host_status.problem_has_been_acknowledged.label("is_acknowledged"),
            case((host_status.scheduled_downtime_depth == 0, 0), else_=1).label("is_in_downtime"),
            host_status.output.label("output"),
        ).select_from(
            host_object
        ).join(
            host_status, and_(host_object.object_id == host_status.host_object_id, host_object.is_active == 1)
        )

    def _select_services(self) -> Select:
        return select(
            service_object.object_id.label("id"),
            literal(ObjectType.SERVICE.value).label("object_type"),
            host_status.host_object_id.label("host_id"),
            service_object.name1.label("host_name"),
            service_object.name2.label("service_name"),
            self._state_type_column(service_status),
            case(
                (service_status.current_state == 0, "OK"),
                (service_status.current_state == 1, "WARNING"),
                (service_status.current_state == 2, "CRITICAL"),
                else_="UNKNOWN",
            ).label("state"),
            self._hard_state_column(service_status),
            service_status.problem_has_been_acknowledged.label("is_acknowledged"),
            case((service_status.scheduled_downtime_depth == 0, 0), else_=1).label("is_in_downtime"),
            service_status.output.label("output"),
        ).select_from(
            service_object
        ).join(
            service_status,
            and_(service_object.object_id == service_status.service_object_id, service_object.is_active == 1),
        ).join(
            service, service.service_object_id == service_status.service_object_id
        ).join(
            host_status, host_status.host_object_id == service.host_object_id
        )

    @staticmethod
    def _state_type_column(status):
        return case((status.state_type == HARD_STATE_TYPE, "HARD"), else_="SOFT").label("state_type")

    @staticmethod
    def _hard_state_column(status):
        # Unchecked and soft states report 99 until the state is confirmed
        return case(
            (status.has_been_checked.is_(None), UNCHECKED_HARD_STATE),
            (status.has_been_checked == 0, UNCHECKED_HARD_STATE),
            (status.state_type == HARD_STATE_TYPE, status.current_state),
            else_=UNCHECKED_HARD_STATE,
        ).label("hard_state")

    async def _fetch_rows(self, query: Select) -> list[MonitoringProblemRow]:
        try:
            async with self.ensure_session() as session:
                result = (await session.execute(query)).mappings().all()
        except SQLAlchemyError as e:
            raise StoreIOError(f"IDO state query failed: {repr(e)}") from e

        return [
            MonitoringProblemRow(
                id=row["id"],
                object_type=ObjectType(row["object_type"]),
                host_id=row["host_id"],
                host_name=row["host_name"],
                service_name=row["service_name"],
                state_type=row["state_type"],
                state=row["state"],
                hard_state=int(row["hard_state"]),
                is_acknowledged=int(row["is_acknowledged"]),
                is_in_downtime=int(row["is_in_downtime"]),
                output=row["output"],
            )
            for row in result
        ]

    # CUSTOM VARIABLES

    async def _fetch_vars(self, object_ids: Iterable[int]) -> Sequence[Row]:
        """Select (object_id, varname, varvalue) of all given objects in one query."""
        query = select(
            CustomVariableStatus.object_id,
            CustomVariableStatus.varname,
            CustomVariableStatus.varvalue,
        ).where(
            CustomVariableStatus.object_id.in_(list(object_ids))
        )
        try:
            async with self.ensure_session() as session:
                return (await session.execute(query)).all()
        except SQLAlchemyError as e:
            raise EnrichmentQueryError(f"Custom variable query failed: {repr(e)}") from e

    async def _enrich_rows_with_vars(self, rows: dict[int, MonitoringProblemRow]) -> None:
        """Attach custom variables to all rows with at most two queries."""
        if not rows:
            return

        host_id_to_service_ids: dict[int, list[int]] = {}
        for row in rows.values():
            if row.host_id is not None:
                host_id_to_service_ids.setdefault(row.host_id, []).append(row.id)

        try:
            for object_id, varname, varvalue in await self._fetch_vars(rows):
                row = rows[object_id]
                prefix = HOST_VARS_PREFIX if row.service_name is None else SERVICE_VARS_PREFIX
                row.vars[prefix + varname] = varvalue
        except EnrichmentQueryError as e:
            self._drop_vars(rows.values(), e)
            return

        if not host_id_to_service_ids:
            return

        try:
            for host_id, varname, varvalue in await self._fetch_vars(host_id_to_service_ids):
                for service_id in host_id_to_service_ids[host_id]:
                    rows[service_id].vars[HOST_VARS_PREFIX + varname] = varvalue
        except EnrichmentQueryError as e:
            # Host rows keep their own variables
            self._drop_vars(
                [rows[service_id] for service_ids in host_id_to_service_ids.values() for service_id in service_ids],
                e,
            )

    @staticmethod
    def _drop_vars(rows: Iterable[MonitoringProblemRow], error: EnrichmentQueryError) -> None:
        rows = list(rows)
        logger.warning(f"Returning {len(rows)} rows without custom variables: {repr(error)}")
        for row in rows:
            row.vars.clear()
            row.vars_loaded = False

    async def _enrich_row_with_vars(self, row: MonitoringProblemRow) -> MonitoringProblemRow:
        try:
            if row.object_type == ObjectType.HOST:
                await self._enrich_with_vars(row, row.id, HOST_VARS_PREFIX)
            else:
                await self._enrich_with_vars(row, row.host_id, HOST_VARS_PREFIX)
                await self._enrich_with_vars(row, row.id, SERVICE_VARS_PREFIX)
        except EnrichmentQueryError as e:
            logger.warning(f"Returning {row.host_name}!{row.object_name} without custom variables: {repr(e)}")
            row.vars.clear()
            row.vars_loaded = False
        return row

    async def _enrich_with_vars(self, row: MonitoringProblemRow, object_id: int, prefix: str) -> None:
        for _, varname, varvalue in await self._fetch_vars([object_id]):
            row.vars[prefix + varname] = varvalue
