import unittest
from unittest.mock import Mock

from hamcrest import assert_that, is_

from companion.window import BrowserWindowHost, WindowOptions, plotter_options


class PlotterOptionsTest(unittest.TestCase):

    def test_port_separators_are_replaced(self):
        assert_that(plotter_options('/dev/ttyACM0', 'atmega328'),
                    is_(WindowOptions('plotter/_dev_ttyACM0/atmega328', 'Plotter', 800, 600, 500, 200)))

    def test_windows_port(self):
        assert_that(plotter_options('COM3', 'uno').url, is_('plotter/COM3/uno'))


class BrowserWindowHostTest(unittest.TestCase):

    def setUp(self):
        self.browser = Mock()
        self.sut = BrowserWindowHost('http://localhost:8000/', self.browser)

    def test_open_shows_page(self):
        window = self.sut.open(plotter_options('COM3', 'uno'), None)
        self.browser.open.assert_called_once_with('http://localhost:8000/plotter/COM3/uno')
        assert_that(window.closed, is_(False))

    def test_close_notifies_once(self):
        on_close = Mock()
        window = self.sut.open(plotter_options('COM3', 'uno'), on_close)
        self.sut.close(window)
        self.sut.close(window)
        on_close.assert_called_once_with()
        assert_that(window.closed, is_(True))

    def test_close_none(self):
        self.sut.close(None)


if __name__ == '__main__':  # pragma no cover
    unittest.main()
