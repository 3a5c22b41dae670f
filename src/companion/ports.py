import asyncio
import logging
from enum import Enum

from companion.protocol.hub import RemoteCallHub
from companion.support.mixins import CommonEqualityMixin, StringerMixin
from companion.window import WindowHost, WindowOptions

logger = logging.getLogger(__name__)

RELEASE_TIMEOUT = 2.0


class PortOwner(Enum):
    NONE = 'none'
    SERIAL_MONITOR = 'serial_monitor'
    PLOTTER = 'plotter'


class PortSession(CommonEqualityMixin, StringerMixin):
    """ The serial port currently claimed, and the operation that claimed it. """

    def __init__(self, port, owner: PortOwner):
        self.port = port
        self.owner = owner


class PortTracker:
    """
    Hands the board's serial port, and the plotter window that reads from it, from one operation
    to the next.

    Only one port session is held at a time. A new claim closes the previous session in the
    companion first, and waits for that to be acknowledged (or for release_timeout to pass) before
    the new session is recorded, so the companion is never asked to open a port it still holds.
    """

    def __init__(self, hub: RemoteCallHub, window_host: WindowHost, release_timeout=RELEASE_TIMEOUT, log=logger):
        self.hub = hub
        self.window_host = window_host
        self.release_timeout = release_timeout
        self.logger = log
        self._session = None
        self._window = None
        self._lock = None

    @property
    def session(self) -> PortSession:
        return self._session

    @property
    def window_open(self):
        return self._window is not None

    async def claim(self, port, owner: PortOwner) -> PortSession:
        self.close_window()
        async with self._port_lock():
            await self._close_session()
            session = self._session = PortSession(port, owner)
        self.logger.debug("port %s claimed by %s", port, owner.value)
        return session

    async def release(self):
        """ closes the plotter window and the port held by the previous operation, if any. """
        self.close_window()
        async with self._port_lock():
            await self._close_session()

    def _port_lock(self):
        # a release already in flight must finish before anyone proceeds
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def _close_session(self):
        session, self._session = self._session, None
        if session is None:
            return
        self.logger.info("closing port %s", session.port)
        result = await self.hub.serial_monitor.close_connection(session.port, timeout=self.release_timeout)
        if not result.succeeded:
            self.logger.warning("port %s not confirmed closed: %s", session.port, result.error)

    def open_window(self, options: WindowOptions, on_close):
        self.close_window()
        self._window = self.window_host.open(options, on_close)
        return self._window

    def close_window(self):
        window, self._window = self._window, None
        if window is None:
            return
        try:
            self.window_host.close(window)
        except Exception as e:
            # the user may already have closed it
            self.logger.debug("window already closed: %s", e)
