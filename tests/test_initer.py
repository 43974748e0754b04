import os
import sys
import tempfile
from unittest import TestCase

from pydantic import ValidationError

sys.path.insert(0, os.path.abspath(os.path.join(__file__, "..", "..", "source")))

from initer import Initer, load_config

CONFIG = """
ido_database:
  url: postgresql+asyncpg://icinga@localhost/icinga
notification_dispatcher:
  command: [msend, -n, "{cell_name}"]
  timeout_sec: 30
cells:
  - cell:
      name: cell_prod
      required_vars:
        host.vars.bem: "yes"
    database:
      url: postgresql+asyncpg://bem@localhost/bem
"""


class TestLoadConfig(TestCase):
    def _write(self, text: str) -> str:
        with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as file:
            file.write(text)
        self.addCleanup(os.unlink, file.name)
        return file.name

    def test_load_config(self) -> None:
        config = load_config(self._write(CONFIG))

        self.assertIsInstance(config, Initer.Config)
        self.assertEqual(config.notification_dispatcher.command, ["msend", "-n", "{cell_name}"])
        self.assertEqual(config.notification_dispatcher.timeout_sec, 30)
        self.assertEqual(config.cells[0].cell.name, "cell_prod")
        self.assertEqual(config.cells[0].cell.required_vars, {"host.vars.bem": "yes"})
        self.assertEqual(config.cells[0].cell.slots["host"], "{host_name}")
        self.assertEqual(config.notification_scheduler.resend_interval_sec, 3600)
        self.assertEqual(config.logging.level, "INFO")

    def test_invalid_config(self) -> None:
        with self.assertRaises(ValidationError):
            load_config(self._write("cells: []\n"))
