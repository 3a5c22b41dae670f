"""
Builds a ready-to-use orchestrator from the settings.

    companion = Companion.from_settings(load_settings(), notifier=my_toasts, window_host=my_windows)
    await companion.upload(Board('atmega328'), code)
"""
import logging

from companion.config.config import CompanionSettings, load_settings
from companion.connection import ConnectionManager
from companion.connector.launcher import ProcessLauncher, executable_path
from companion.gateway import CommandGateway
from companion.notify import LoggingNotifier, NotificationEmitter
from companion.outcome import Board
from companion.ports import PortTracker
from companion.protocol.hub import RemoteCallHub
from companion.protocol.wshubs import WSHubsClient
from companion.support.retry_strategy import FixedRetryStrategy
from companion.window import BrowserWindowHost, WindowHost

logger = logging.getLogger(__name__)


class Companion:
    """ The public operations on the companion, with the collaborators they need. """

    def __init__(self, hub: RemoteCallHub, launcher: ProcessLauncher, notifier: NotificationEmitter,
                 window_host: WindowHost, settings: CompanionSettings=None):
        settings = settings or CompanionSettings()
        self.settings = settings
        self.hub = hub
        self.launcher = launcher
        self.notifier = notifier
        self.connection = ConnectionManager(hub, launcher, notifier, settings.ws_port,
                                            client_id=settings.client_id,
                                            retry_strategy=FixedRetryStrategy(settings.retry_delay),
                                            max_attempts=settings.max_attempts,
                                            liveness_timeout=settings.liveness_timeout)
        self.ports = PortTracker(hub, window_host, release_timeout=settings.release_timeout)
        self.gateway = CommandGateway(self.connection, self.ports, hub, notifier)

    @classmethod
    def from_settings(cls, settings: CompanionSettings=None, notifier: NotificationEmitter=None,
                      window_host: WindowHost=None, loop=None):
        """
        Creates the orchestrator with the websocket hub and process launcher described by the settings.
        """
        settings = settings or load_settings()
        executable = settings.executable or executable_path(settings.app_path)
        hub = WSHubsClient(settings.url, connect_timeout=settings.connect_timeout)
        launcher = ProcessLauncher(executable, loop=loop)
        window_host = window_host or BrowserWindowHost(settings.plotter_base_url)
        return cls(hub, launcher, notifier or LoggingNotifier(), window_host, settings)

    def verify(self, code):
        return self.gateway.verify(code)

    def upload(self, board: Board, code):
        return self.gateway.upload(board, code)

    def upload_hex(self, mcu, hex_text):
        return self.gateway.upload_hex(mcu, hex_text)

    def serial_monitor(self, board: Board):
        return self.gateway.serial_monitor(board)

    def show_plotter(self, board: Board):
        return self.gateway.show_plotter(board)

    def show_app(self):
        return self.gateway.show_app()

    def version(self):
        return self.gateway.version()

    def is_in_progress(self):
        return self.gateway.is_in_progress()

    async def close(self):
        """ releases the port and window held, and closes the channel to the companion. """
        if self.hub.connected:
            await self.ports.release()
        else:
            self.ports.close_window()
        self.hub.close()
