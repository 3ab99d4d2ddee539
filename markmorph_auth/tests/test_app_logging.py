"""Tests for :mod:`markmorph_auth.app_logging`."""

from unittest import TestCase
import io
import json
import logging

from pythonjsonlogger import jsonlogger

from ..app_logging import setup_logger


class TestSetupLogger(TestCase):
    def setUp(self):
        root = logging.getLogger()
        self.addCleanup(root.setLevel, root.level)
        self.addCleanup(setattr, root, 'handlers', list(root.handlers))

    def _ours(self):
        return [handler for handler in logging.getLogger().handlers
                if getattr(handler, '_markmorph', False)]

    def test_json(self):
        """Records are rendered as JSON with renamed fields."""
        setup_logger('DEBUG')
        handlers = self._ours()
        self.assertEqual(len(handlers), 1)
        self.assertIsInstance(handlers[0].formatter, jsonlogger.JsonFormatter)

        stream = io.StringIO()
        handlers[0].setStream(stream)
        logging.getLogger('markmorph_auth.test').info('hello %s', 'there')
        record = json.loads(stream.getvalue().strip().splitlines()[-1])
        self.assertEqual(record['message'], 'hello there')
        self.assertEqual(record['level'], 'INFO')
        self.assertIn('timestamp', record)

    def test_replaces_handler(self):
        """Calling setup again does not stack handlers."""
        setup_logger()
        setup_logger('WARNING', json=False)
        handlers = self._ours()
        self.assertEqual(len(handlers), 1)
        self.assertNotIsInstance(handlers[0].formatter,
                                 jsonlogger.JsonFormatter)
        self.assertEqual(logging.getLogger().level, logging.WARNING)
