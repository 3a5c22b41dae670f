"""
The remote-call channel to the companion.

Calls are grouped into hubs (namespaces) on the companion side. Each hub has server functions
the client calls, and client functions the companion pushes to us. The proxies at the bottom of
this module give the server functions Python names and fix their argument order.
"""
from abc import abstractmethod

from companion.outcome import CallResult
from companion.support.events import EventSource

CODE_HUB = 'CodeHub'
SERIAL_MONITOR_HUB = 'SerialMonitorHub'
WINDOW_HUB = 'WindowHub'
UTILS_HUB = 'UtilsHub'


class HubError(Exception):
    """ Indicates an error condition with the remote-call channel. """


class HubConnectionError(HubError):
    """ The channel could not be opened. """


class HubEvent:
    """ base class for hub events. """
    def __init__(self, hub):
        self.hub = hub


class HubClosedEvent(HubEvent):
    """ The channel closed without being asked to. """
    def __init__(self, hub, reason=None):
        super().__init__(hub)
        self.reason = reason


class HubMessageErrorEvent(HubEvent):
    """ A message was received that could not be decoded. """
    def __init__(self, hub, error):
        super().__init__(hub)
        self.error = error


class RemoteCallHub:
    """
    A request/response channel to the companion, grouped into hubs.

    Failures of individual calls are never raised. They come back as a failed CallResult, so callers
    handle a companion error, a timeout and a dropped channel the same way.
    """

    def __init__(self):
        self.events = EventSource()
        self.code = CodeHub(self)
        self.serial_monitor = SerialMonitorHub(self)
        self.window = WindowHub(self)
        self.utils = UtilsHub(self)

    @property
    @abstractmethod
    def connected(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def connect(self):
        """
        Opens the channel. Returns silently if already open.
        Raises HubConnectionError when the companion cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self):
        """ drops the client handle, without firing a closed event. Pending calls fail. """
        raise NotImplementedError

    @abstractmethod
    def close(self):
        raise NotImplementedError

    @abstractmethod
    async def call(self, hub, function, *args, timeout=None) -> CallResult:
        """
        Calls a server function.
        :param timeout: seconds to wait for the reply, or None to wait indefinitely.
        """
        raise NotImplementedError

    @abstractmethod
    def subscribe(self, hub, function, handler):
        """ registers a handler for a client function pushed by the companion. """
        raise NotImplementedError


class HubProxy:
    name = None

    def __init__(self, hub: RemoteCallHub):
        self._hub = hub

    def _call(self, function, *args, timeout=None):
        return self._hub.call(self.name, function, *args, timeout=timeout)

    def on(self, function, handler):
        self._hub.subscribe(self.name, function, handler)


class CodeHub(HubProxy):
    name = CODE_HUB

    def compile(self, code, timeout=None):
        return self._call('compile', code, timeout=timeout)

    def upload(self, code, mcu, timeout=None):
        return self._call('upload', code, mcu, timeout=timeout)

    def upload_hex(self, hex_text, mcu, timeout=None):
        return self._call('uploadHex', hex_text, mcu, timeout=timeout)


class SerialMonitorHub(HubProxy):
    name = SERIAL_MONITOR_HUB

    def find_board_port(self, mcu, timeout=None):
        return self._call('findBoardPort', mcu, timeout=timeout)

    def start_app(self, port, mcu, timeout=None):
        return self._call('startApp', port, mcu, timeout=timeout)

    def close_connection(self, port, timeout=None):
        return self._call('closeConnection', port, timeout=timeout)

    def unsubscribe_from_hub(self, timeout=None):
        return self._call('unsubscribeFromHub', timeout=timeout)


class WindowHub(HubProxy):
    name = WINDOW_HUB

    def show_app(self, timeout=None):
        return self._call('showApp', timeout=timeout)


class UtilsHub(HubProxy):
    name = UTILS_HUB

    def set_id(self, name, timeout=None):
        return self._call('setId', name, timeout=timeout)

    def get_id(self, timeout=None):
        return self._call('getId', timeout=timeout)
