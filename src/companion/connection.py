import asyncio
import logging
from enum import Enum

from companion.connector.launcher import LauncherError, ProcessLauncher
from companion.notify import SOURCE, NotificationEmitter, Severity, Tags
from companion.protocol.hub import HubClosedEvent, HubConnectionError, HubMessageErrorEvent, RemoteCallHub
from companion.support.events import EventSource
from companion.support.retry_strategy import FixedRetryStrategy, RetryContext

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_ID = 'Bitbloq'
TIME_FOR_COMPANION_TO_START = 0.7
MAX_ATTEMPTS_BEFORE_ESCALATION = 20
LIVENESS_TIMEOUT = 2.0


class ConnectionState(Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'


class ConnectionStateChangedEvent:
    def __init__(self, manager, old_state, new_state):
        self.manager = manager
        self.old_state = old_state
        self.new_state = new_state


class ConnectionManager:
    """
    Makes sure the companion is reachable before a command runs.

    ensure_connected() resolves to True once the hub is connected and the handshake is done. When the
    hub cannot be reached, the companion process is started and the connection retried at a fixed
    period. The companion is slow to start compared with a refused connection, so several seconds
    of failures are tolerated before the user is told the companion was not detected, and
    ensure_connected() resolves to False.

    A hub that is connected but no longer answers is treated as dead: it is dropped, the companion
    is started again and a new sequence of attempts begins.

    Failures never propagate to the caller as exceptions.

    :param hub:             the channel to the companion
    :param launcher:        starts the companion process
    :param notifier:        receives the user-visible connection notices
    :param listen_port:     the port the companion is started on
    :param client_id:       the name this client registers with the companion
    :param retry_strategy:  gives the delay before each retry
    :param max_attempts:    failed attempts after which the user is told the companion is not detected
    :param liveness_timeout: seconds to wait for a connected companion to answer
    """

    def __init__(self, hub: RemoteCallHub, launcher: ProcessLauncher, notifier: NotificationEmitter,
                 listen_port, client_id=DEFAULT_CLIENT_ID, retry_strategy=None,
                 max_attempts=MAX_ATTEMPTS_BEFORE_ESCALATION, liveness_timeout=LIVENESS_TIMEOUT, log=logger):
        self.hub = hub
        self.launcher = launcher
        self.notifier = notifier
        self.listen_port = listen_port
        self.client_id = client_id
        self.retry_strategy = retry_strategy or FixedRetryStrategy(TIME_FOR_COMPANION_TO_START)
        self.max_attempts = max_attempts
        self.liveness_timeout = liveness_timeout
        self.logger = log
        self.events = EventSource()
        self.state = ConnectionState.DISCONNECTED
        self.context = None                     # the RetryContext of the sequence in progress
        self.could_successfully_connect = False
        self.process = None                     # the most recently launched companion
        self._pending = None
        hub.events.add(self._hub_events)

    async def ensure_connected(self) -> bool:
        """
        :return: True when the companion is connected and ready for calls. False when the companion
            could not be reached and the user has been told.
        """
        if self._pending is None and self.state is ConnectionState.CONNECTED and self.hub.connected:
            result = await self.hub.utils.get_id(timeout=self.liveness_timeout)
            if result.succeeded:
                return True
            if self._pending is None:
                self.logger.warning("companion stopped answering (%s), restarting it", result.error)
                self.hub.reset()
                self._set_state(ConnectionState.DISCONNECTED)
                self._launch()
                self._start_sequence(RetryContext(self.max_attempts))
        elif self._pending is None:
            self._start_sequence(RetryContext(self.max_attempts))
        # callers arriving while a sequence runs share its result
        return await asyncio.shield(self._pending)

    def _start_sequence(self, context: RetryContext):
        self._pending = asyncio.ensure_future(self._run_sequence(context))

    async def _run_sequence(self, context: RetryContext) -> bool:
        self.context = context
        self._set_state(ConnectionState.CONNECTING)
        toast = self.notifier.add(Tags.START_APP, SOURCE, Severity.LOADING)
        escalate = False
        try:
            while True:
                if await self._attempt():
                    self.could_successfully_connect = True
                    self._set_state(ConnectionState.CONNECTED)
                    return True
                context.record_failure()
                if escalate and context.exhausted:
                    self.logger.error("companion not detected after %d attempts", context.attempt_count)
                    self.notifier.close(toast)
                    self.notifier.modal(Tags.NOT_DETECTED, SOURCE)
                    return False
                if context.claim_launch():
                    self._launch()
                escalate = True
                await asyncio.sleep(self.retry_strategy())
        finally:
            self.notifier.close(toast)
            self.context = None
            self._pending = None
            if self.state is ConnectionState.CONNECTING:
                self._set_state(ConnectionState.DISCONNECTED)

    async def _attempt(self):
        """ one connection attempt: connect and register with the companion. """
        try:
            await self.hub.connect()
        except HubConnectionError as e:
            self.logger.debug("companion not reachable: %s", e)
            return False
        result = await self.hub.utils.set_id(self.client_id, timeout=self.liveness_timeout)
        if not result.succeeded:
            self.logger.warning("handshake with companion failed: %s", result.error)
            self.hub.reset()
            return False
        return True

    def _launch(self):
        try:
            self.process = self.launcher.launch(self.listen_port)
        except LauncherError as e:
            # keep retrying; the companion may have been started by other means
            self.logger.error("could not start companion: %s", e)

    def _set_state(self, state: ConnectionState):
        old = self.state
        if old is not state:
            self.state = state
            self.logger.debug("connection %s -> %s", old.value, state.value)
            self.events.fire(ConnectionStateChangedEvent(self, old, state))

    def _hub_events(self, event):
        if isinstance(event, HubClosedEvent):
            self._closed(event.reason)
        elif isinstance(event, HubMessageErrorEvent):
            self.logger.error("Error receiving message: %s", event.error)
            self.hub.close()
            self._closed(event.error)

    def _closed(self, reason):
        self.logger.error("companion disconnected with error: %s", reason)
        if self.state is ConnectionState.CONNECTED:
            self._set_state(ConnectionState.DISCONNECTED)
        if self.could_successfully_connect:
            self.notifier.add(Tags.CLOSED_UNEXPECTEDLY, SOURCE, Severity.WARNING)
