import argparse
import logging
from dataclasses import dataclass, field
from typing import Optional

import yaml
from pydantic import TypeAdapter

from controller import CellContext, Controller
from entities.bem_metadata import bem_metadata
from entities.cell_config import RuleCellConfig
from notifiers.notification_dispatcher import NotificationDispatcher
from notifiers.notification_scheduler import NotificationScheduler
from outer_resources.database_connector import DatabaseConnector, DatabaseSessionMaker
from outer_resources.ido_state_fetcher import IdoStateFetcher
from outer_resources.issue_store import IssueStore
from outer_resources.notification_store import NotificationStore
from utils.logs import LogsConfig, init_logs

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/bem.yaml"


@dataclass
class CellSettings:
    cell: RuleCellConfig.Config
    database: DatabaseConnector.Config


def load_config(path: str) -> "Initer.Config":
    """Read YAML file into Initer.Config."""
    with open(path, encoding="utf-8") as file:
        raw_config = yaml.safe_load(file) or {}
    return TypeAdapter(Initer.Config).validate_python(raw_config)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Correlate monitoring problems with BEM cells")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="YAML configuration file")
    return parser.parse_args(argv)


@dataclass
class Initer:
    @dataclass
    class Config:
        ido_database: DatabaseConnector.Config
        cells: list[CellSettings]
        notification_dispatcher: NotificationDispatcher.Config
        logging: LogsConfig = field(default_factory=LogsConfig)
        controller: Controller.Config = field(default_factory=Controller.Config)
        notification_scheduler: NotificationScheduler.Config = field(default_factory=NotificationScheduler.Config)
        create_tables: bool = True

    config: Config

    @dataclass
    class Context:
        ido_database_connector: DatabaseConnector = None
        ido_state_fetcher: IdoStateFetcher = None
        notification_scheduler: NotificationScheduler = None
        cell_database_connectors: list[DatabaseConnector] = field(default_factory=list)
        cells: list[CellContext] = field(default_factory=list)
        controller: Controller = None

    context: Context

    def __init__(self, config: Optional[Config] = None) -> None:
        if config is None:
            config = load_config(parse_args().config)
        self.config = config
        self.context = self.Context()
        init_logs(self.config.logging)
        logger.info(f"Config: {self.config}")

    async def __aenter__(self) -> Controller:
        self._init_ido_components()
        self._init_notification_components()
        for cell_settings in self.config.cells:
            await self._init_cell_components(cell_settings)

        self.context.controller = Controller(
            self.config.controller,
            Controller.Context(
                ido_state_fetcher=self.context.ido_state_fetcher,
                notification_scheduler=self.context.notification_scheduler,
                cells=self.context.cells,
            ),
        )
        return self.context.controller

    def _init_ido_components(self) -> None:
        self.context.ido_database_connector = DatabaseConnector(self.config.ido_database)
        self.context.ido_state_fetcher = IdoStateFetcher(
            IdoStateFetcher.Context(
                database_session_maker=DatabaseSessionMaker(
                    DatabaseSessionMaker.Context(database_connector=self.context.ido_database_connector)
                )
            )
        )

    def _init_notification_components(self) -> None:
        self.context.notification_scheduler = NotificationScheduler(self.config.notification_scheduler)

    async def _init_cell_components(self, cell_settings: CellSettings) -> None:
        database_connector = DatabaseConnector(cell_settings.database)
        self.context.cell_database_connectors.append(database_connector)
        if self.config.create_tables:
            await database_connector.create_tables(bem_metadata)

        database_session_maker = DatabaseSessionMaker(
            DatabaseSessionMaker.Context(database_connector=database_connector)
        )
        cell = RuleCellConfig(
            cell_settings.cell,
            RuleCellConfig.Context(database_session_maker=database_session_maker),
        )
        notification_store = NotificationStore(NotificationStore.Context(database_session_maker=cell.db))
        self.context.cells.append(
            CellContext(
                cell=cell,
                issue_store=IssueStore(IssueStore.Context(database_session_maker=cell.db)),
                notification_dispatcher=NotificationDispatcher(
                    self.config.notification_dispatcher,
                    NotificationDispatcher.Context(notification_store=notification_store),
                ),
            )
        )

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        for database_connector in self.context.cell_database_connectors:
            await database_connector.dispose()
        if self.context.ido_database_connector is not None:
            await self.context.ido_database_connector.dispose()
        logger.info("----===== Deinit done ====----")
