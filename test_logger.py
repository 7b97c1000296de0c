"""
test_logger.py — Root logging setup.
"""

import logging
import os
import tempfile
import unittest

import logger as monitor_logger


class TestSetupLogger(unittest.TestCase):

    def setUp(self):
        self.root = logging.getLogger()
        self.saved_handlers = list(self.root.handlers)
        self.saved_level = self.root.level
        self.tmp = tempfile.TemporaryDirectory()
        monitor_logger._ROOT_CONFIGURED = False

    def tearDown(self):
        for handler in self.root.handlers:
            if handler not in self.saved_handlers:
                handler.close()
        self.root.handlers = self.saved_handlers
        self.root.setLevel(self.saved_level)
        monitor_logger._ROOT_CONFIGURED = False
        self.tmp.cleanup()

    def _added(self):
        return [h for h in self.root.handlers if h not in self.saved_handlers]

    def test_console_level_and_debug_file(self):
        path = os.path.join(self.tmp.name, "monitor.log")
        log = monitor_logger.setup_logger("poller", log_file=path, level="warning")
        added = self._added()
        file_handlers = [h for h in added if isinstance(h, logging.FileHandler)]
        consoles = [h for h in added if not isinstance(h, logging.FileHandler)]
        self.assertEqual(len(file_handlers), 1)
        self.assertEqual(file_handlers[0].level, logging.DEBUG)
        self.assertEqual(consoles[0].level, logging.WARNING)

        log.debug("tick 1 fetched 3 entries")
        file_handlers[0].flush()
        with open(path, encoding="utf-8") as f:
            self.assertIn("| poller", f.read())

    def test_configures_root_once(self):
        path = os.path.join(self.tmp.name, "monitor.log")
        monitor_logger.setup_logger("main", log_file=path)
        monitor_logger.setup_logger("session", log_file=path)
        self.assertEqual(len(self._added()), 2)

    def test_unwritable_file_keeps_console(self):
        path = os.path.join(self.tmp.name, "missing-dir", "monitor.log")
        monitor_logger.setup_logger("main", log_file=path)
        added = self._added()
        self.assertEqual(len(added), 1)
        self.assertNotIsInstance(added[0], logging.FileHandler)


if __name__ == "__main__":
    unittest.main()
