import logging
import webbrowser
from abc import abstractmethod

from companion.support.mixins import CommonEqualityMixin, StringerMixin

logger = logging.getLogger(__name__)


class WindowOptions(CommonEqualityMixin, StringerMixin):
    def __init__(self, url, title, width, height, min_width, min_height):
        self.url = url
        self.title = title
        self.width = width
        self.height = height
        self.min_width = min_width
        self.min_height = min_height


def plotter_options(port, mcu) -> WindowOptions:
    """
    Describes the plotter window for a board on the given port.
    >>> plotter_options('/dev/ttyUSB0', 'uno').url
    'plotter/_dev_ttyUSB0/uno'
    """
    port = port.replace('/', '_')
    return WindowOptions('plotter/' + port + '/' + mcu, 'Plotter', 800, 600, 500, 200)


class WindowHost:
    """ Opens and closes the secondary window used to display live data. """

    @abstractmethod
    def open(self, options: WindowOptions, on_close):
        """
        Opens a window.
        :param on_close: called with no arguments when the window is closed by the user
        :return: a handle for the window
        """
        raise NotImplementedError

    @abstractmethod
    def close(self, handle):
        """ closes the window. Must be safe to call when the window is already closed. """
        raise NotImplementedError


class BrowserWindow:
    def __init__(self, url, on_close):
        self.url = url
        self.on_close = on_close
        self.closed = False


class BrowserWindowHost(WindowHost):
    """
    Shows windows as pages in the system web browser.
    The browser gives no notice when the page is closed, so on_close only runs when the window
    is closed through this host.
    """

    def __init__(self, base_url, browser=webbrowser):
        self.base_url = base_url
        self.browser = browser

    def open(self, options: WindowOptions, on_close):
        url = self.base_url.rstrip('/') + '/' + options.url
        logger.info("opening %s at %s", options.title, url)
        self.browser.open(url)
        return BrowserWindow(url, on_close)

    def close(self, handle: BrowserWindow):
        if handle is None or handle.closed:
            return
        handle.closed = True
        if handle.on_close:
            handle.on_close()
