import logging
import unittest
from unittest.mock import Mock

from hamcrest import assert_that, is_, is_not

from companion.notify import SOURCE, LoggingNotifier, Severity, Tags

class LoggingNotifierTest(unittest.TestCase):

    def setUp(self):
        self.log = Mock()
        self.sut = LoggingNotifier(self.log)

    def test_handles_are_distinct(self):
        first = self.sut.add(Tags.COMPILING, SOURCE, Severity.LOADING)
        second = self.sut.add(Tags.UPLOADING, SOURCE, Severity.LOADING)
        assert_that(first.key, is_not(second.key))

    def test_warning_is_logged_with_detail(self):
        handle = self.sut.add(Tags.COMPILE_ERROR, SOURCE, Severity.WARNING, detail='expected ;')
        self.log.log.assert_called_once_with(logging.WARNING, "[%s] %s: %s", SOURCE, Tags.COMPILE_ERROR,
                                             'expected ;')
        assert_that(handle.detail, is_('expected ;'))

    def test_close_is_idempotent(self):
        handle = self.sut.add(Tags.COMPILING, SOURCE, Severity.LOADING)
        self.sut.close(handle)
        self.sut.close(handle)
        self.sut.close(None)
        assert_that(handle.closed, is_(True))
        self.log.debug.assert_called_once()


if __name__ == '__main__':  # pragma no cover
    unittest.main()
