import asyncio
import logging

from companion.connection import ConnectionManager
from companion.notify import SOURCE, NotificationEmitter, Severity, Tags
from companion.outcome import Board, ErrorKind, Outcome, classify_upload_error, compile_error_detail
from companion.ports import PortOwner, PortTracker
from companion.protocol.hub import RemoteCallHub
from companion.window import plotter_options

logger = logging.getLogger(__name__)

VERIFIED_DISMISS_MS = 5000
UPLOADED_DISMISS_MS = 5000
OPENED_DISMISS_MS = 3000


class SingleFlightGuard:
    """ Set while a high-level operation is running. At most one holder at a time. """

    def __init__(self):
        self._active = False

    @property
    def active(self):
        return self._active

    def acquire(self):
        """ :return: True if the guard was taken, False if another operation holds it. """
        if self._active:
            return False
        self._active = True
        return True

    def release(self):
        self._active = False


class CommandGateway:
    """
    The operations offered to the application.

    Each operation makes sure the companion is connected, issues its remote calls in order, and
    reports the result through the notifier. While verify, upload, upload_hex or serial_monitor
    runs, any further call to those (and to show_plotter) is dropped and returns None.
    show_plotter honours the guard but does not take it, since the plotter runs alongside the
    other views.

    Operations return an Outcome. They never raise for companion or connection failures.
    """

    def __init__(self, connection: ConnectionManager, ports: PortTracker, hub: RemoteCallHub,
                 notifier: NotificationEmitter, log=logger):
        self.connection = connection
        self.ports = ports
        self.hub = hub
        self.notifier = notifier
        self.logger = log
        self.guard = SingleFlightGuard()
        self.serial_port = None     # last port reported by the companion, for display only
        self._background = set()
        self._subscribe()

    def _subscribe(self):
        code = self.hub.code
        code.on('isCompiling', self._is_compiling)
        code.on('isUploading', self._is_uploading)
        code.on('isSettingPort', self._is_setting_port)

    def _is_compiling(self):
        self.notifier.add(Tags.COMPILING, SOURCE, Severity.LOADING)

    def _is_uploading(self, port=None):
        self.notifier.add(Tags.UPLOADING, SOURCE, Severity.LOADING, detail=port)

    def _is_setting_port(self, port):
        self.logger.debug("is setting port in: %s", port)
        self.serial_port = port

    def is_in_progress(self):
        return self.guard.active

    def _warn(self, tag, detail=None):
        self.notifier.add(tag, SOURCE, Severity.WARNING, detail=detail)

    def _board_ready(self, board: Board):
        if not board:
            self._warn(Tags.BOARD_NOT_READY)
            return False
        return True

    async def _connected(self):
        if await self.connection.ensure_connected():
            return True
        self.logger.info("companion unavailable, abandoning operation")
        return False

    async def verify(self, code):
        """ Compiles the code without uploading. No board is needed. """
        if not self.guard.acquire():
            return None
        try:
            if not await self._connected():
                return Outcome.failure(ErrorKind.COMPANION_UNDETECTED)
            result = await self.hub.code.compile(code)
            if result.succeeded:
                self.notifier.add(Tags.COMPILE_VERIFIED, SOURCE, Severity.OK, VERIFIED_DISMISS_MS)
                return Outcome.success()
            detail = compile_error_detail(result.error)
            self._warn(Tags.COMPILE_ERROR, detail)
            return Outcome.failure(ErrorKind.COMPILE_ERROR, detail)
        finally:
            self.guard.release()

    async def upload(self, board: Board, code):
        if self.guard.active:
            return None
        self.ports.close_window()
        if not code or not board:
            self._warn(Tags.BOARD_NOT_READY)
            return Outcome.failure(ErrorKind.BOARD_NOT_READY)
        self.guard.acquire()
        try:
            if not await self._connected():
                return Outcome.failure(ErrorKind.COMPANION_UNDETECTED)
            self.notifier.add(Tags.SETTING_BOARD, SOURCE, Severity.LOADING)
            result = await self.hub.code.upload(code, board.mcu)
            return self._uploaded(result)
        finally:
            self.guard.release()

    async def upload_hex(self, mcu, hex_text):
        """ Uploads precompiled firmware. The board is not checked; the companion reports a missing one. """
        if not self.guard.acquire():
            return None
        try:
            self.ports.close_window()
            if not await self._connected():
                return Outcome.failure(ErrorKind.COMPANION_UNDETECTED)
            self.notifier.add(Tags.SETTING_BOARD, SOURCE, Severity.LOADING)
            result = await self.hub.code.upload_hex(hex_text, mcu)
            return self._uploaded(result, result.value)
        finally:
            self.guard.release()

    def _uploaded(self, result, detail=None):
        if result.succeeded:
            self.notifier.add(Tags.CODE_UPLOADED, SOURCE, Severity.OK, UPLOADED_DISMISS_MS, detail)
            return Outcome.success(detail)
        return self.handle_upload_error(result.error)

    def handle_upload_error(self, error) -> Outcome:
        outcome = classify_upload_error(error)
        kind = outcome.error_kind
        if kind is ErrorKind.COMPILE_ERROR:
            self._warn(Tags.COMPILE_ERROR, outcome.detail)
        elif kind is ErrorKind.BOARD_NOT_READY:
            self._warn(Tags.NO_PORT_FOUND)
        else:
            self._warn(Tags.UPLOAD_ERROR, outcome.detail)
        return outcome

    async def serial_monitor(self, board: Board):
        if self.guard.active:
            return None
        if not self._board_ready(board):
            return Outcome.failure(ErrorKind.BOARD_NOT_READY)
        self.guard.acquire()
        try:
            if not await self._connected():
                return Outcome.failure(ErrorKind.COMPANION_UNDETECTED)
            await self.ports.release()
            alert = self.notifier.add(Tags.OPEN_SERIAL_MONITOR, SOURCE, Severity.LOADING)
            found = await self.hub.serial_monitor.find_board_port(board.mcu)
            if found.succeeded:
                port = found.value
                await self.ports.claim(port, PortOwner.SERIAL_MONITOR)
                started = await self.hub.serial_monitor.start_app(port, board.mcu)
                if started.succeeded:
                    self.notifier.close(alert)
                    return Outcome.success(port)
            self.notifier.close(alert)
            self._warn(Tags.NO_PORT_FOUND)
            return Outcome.failure(ErrorKind.NO_PORT_FOUND)
        finally:
            self.guard.release()

    async def show_plotter(self, board: Board):
        # checks the guard but never takes it: the plotter coexists with the monitor views
        if self.guard.active:
            return None
        if not self._board_ready(board):
            return Outcome.failure(ErrorKind.BOARD_NOT_READY)
        if not await self._connected():
            return Outcome.failure(ErrorKind.COMPANION_UNDETECTED)
        await self.ports.release()
        alert = self.notifier.add(Tags.OPEN_PLOTTER, SOURCE, Severity.LOADING)
        try:
            found = await self.hub.serial_monitor.find_board_port(board.mcu)
        finally:
            self.notifier.close(alert)
        if not found.succeeded:
            self._warn(Tags.NO_PORT_FOUND)
            return Outcome.failure(ErrorKind.NO_PORT_FOUND)
        port = found.value
        await self.ports.claim(port, PortOwner.PLOTTER)
        self.ports.open_window(plotter_options(port, board.mcu), self._plotter_closed)
        return Outcome.success(port)

    def _plotter_closed(self):
        task = asyncio.ensure_future(self.hub.serial_monitor.unsubscribe_from_hub())
        self._background.add(task)
        task.add_done_callback(self._unsubscribed)

    def _unsubscribed(self, task):
        self._background.discard(task)
        if task.cancelled():
            return
        result = task.result()
        if not result.succeeded:
            self.logger.warning("companion did not unsubscribe the plotter: %s", result.error)

    async def show_app(self):
        """ Brings the companion's own window to the front. """
        if not await self._connected():
            return Outcome.failure(ErrorKind.COMPANION_UNDETECTED)
        self.notifier.add(Tags.SHOWING_APP, SOURCE, Severity.LOADING)
        result = await self.hub.window.show_app()
        if result.succeeded:
            self.notifier.add(Tags.SUCCESSFULLY_OPENED, SOURCE, Severity.OK, OPENED_DISMISS_MS)
            return Outcome.success()
        self.logger.info("companion window not shown: %s", result.error)
        return Outcome.failure(result.error_kind, result.error)

    async def version(self):
        """ Connects to the companion, starting it if needed, which brings up its version check. """
        if await self._connected():
            return Outcome.success()
        return Outcome.failure(ErrorKind.COMPANION_UNDETECTED)
