"""Tests for the structured logging setup."""

import logging
import unittest

from plotcalc_pkg.logging_config import (
    StructuredFormatter,
    current_level,
    get_logger,
    setup_logging,
)


class TestLoggingConfig(unittest.TestCase):
    def tearDown(self):
        logger = logging.getLogger("plotcalc")
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)

    def _record(self, **extra):
        record = logging.LogRecord(
            "plotcalc.worker", logging.DEBUG, __file__, 1, "compute done in %.1f ms", (2.5,), None
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_format_without_request(self):
        line = StructuredFormatter().format(self._record())
        self.assertIn("[DEBUG] plotcalc.worker: compute done in 2.5 ms", line)
        self.assertNotIn("request=", line)

    def test_format_with_request(self):
        line = StructuredFormatter().format(self._record(request_id="r7"))
        self.assertTrue(line.endswith("compute done in 2.5 ms [request=r7]"))

    def test_setup_logging(self):
        logger = setup_logging("debug")
        self.assertEqual(logger.name, "plotcalc")
        self.assertEqual(len(logger.handlers), 1)
        self.assertEqual(current_level(), logging.DEBUG)
        # a second call replaces rather than adds handlers
        setup_logging(logging.ERROR)
        self.assertEqual(len(logger.handlers), 1)
        self.assertEqual(current_level(), logging.ERROR)

    def test_get_logger(self):
        self.assertEqual(get_logger("sampler").name, "plotcalc.sampler")
        self.assertEqual(get_logger().name, "plotcalc")


if __name__ == "__main__":
    unittest.main()
