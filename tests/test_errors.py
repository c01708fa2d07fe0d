import logging
import unittest

from s3_explorer.errors import ConfigError, reraise_as, setup_logging


class ReraiseAsTest(unittest.TestCase):
    def test_listed_errors_are_wrapped(self):
        @reraise_as(ConfigError, OSError)
        def load(path):
            raise FileNotFoundError(path)

        with self.assertLogs(__name__, level="ERROR"):
            with self.assertRaises(ConfigError) as cm:
                load("cfg.yaml")
        self.assertIsInstance(cm.exception.__cause__, FileNotFoundError)

    def test_other_errors_pass_through(self):
        @reraise_as(ConfigError, OSError)
        def load(path):
            raise KeyError(path)

        with self.assertRaises(KeyError):
            load("cfg.yaml")

    def test_return_value_is_kept(self):
        @reraise_as(ConfigError, OSError)
        def load(path):
            return {"path": path}

        self.assertEqual(load("a"), {"path": "a"})


class SetupLoggingTest(unittest.TestCase):
    def tearDown(self):
        root = logging.getLogger()
        for h in list(root.handlers):
            root.removeHandler(h)

    def test_urllib3_is_quieted_unless_debugging(self):
        setup_logging(logging.INFO)
        self.assertEqual(logging.getLogger("urllib3").level, logging.WARNING)
        setup_logging(logging.DEBUG)
        self.assertEqual(logging.getLogger("urllib3").level, logging.DEBUG)

    def test_repeat_calls_replace_handlers(self):
        setup_logging()
        setup_logging()
        self.assertEqual(len(logging.getLogger().handlers), 1)


if __name__ == "__main__":
    unittest.main()
