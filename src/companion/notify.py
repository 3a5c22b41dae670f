import itertools
import logging
from abc import abstractmethod
from enum import Enum

logger = logging.getLogger(__name__)

SOURCE = 'companion'


class Severity(Enum):
    LOADING = 'loading'
    OK = 'ok'
    WARNING = 'warning'


class Tags:
    """ notification tags posted by the orchestrator """
    START_APP = 'companion_toast_startApp'
    CLOSED_UNEXPECTEDLY = 'companion_toast_closedUnexpectedly'
    SHOWING_APP = 'companion_toast_showingApp'
    SUCCESSFULLY_OPENED = 'companion_toast_successfullyOpened'
    NOT_DETECTED = 'companion_modal_notDetected'
    COMPILING = 'alert-companion-compiling'
    UPLOADING = 'alert-companion-uploading'
    COMPILE_VERIFIED = 'alert-companion-compile-verified'
    COMPILE_ERROR = 'alert-companion-compile-error'
    BOARD_NOT_READY = 'alert-companion-boardNotReady'
    NO_PORT_FOUND = 'alert-companion-no-port-found'
    UPLOAD_ERROR = 'alert-companion-upload-error'
    CODE_UPLOADED = 'alert-companion-code-uploaded'
    SETTING_BOARD = 'alert-companion-settingBoard'
    OPEN_SERIAL_MONITOR = 'alert-companion-openSerialMonitor'
    OPEN_PLOTTER = 'alert-companion-openPlotter'


class Notification:
    """ A handle to a posted notification. """

    def __init__(self, key, tag, source, severity: Severity, auto_dismiss_ms=None, detail=None):
        self.key = key
        self.tag = tag
        self.source = source
        self.severity = severity
        self.auto_dismiss_ms = auto_dismiss_ms
        self.detail = detail
        self.closed = False


class NotificationEmitter:
    """ Posts and dismisses user-visible status messages. """

    @abstractmethod
    def add(self, tag, source, severity: Severity, auto_dismiss_ms=None, detail=None) -> Notification:
        """
        Posts a notification.
        :param tag: identifies the message to show
        :param auto_dismiss_ms: when given, the notification is dismissed after this many milliseconds
        :param detail: additional text shown with the message
        :return: a handle that can be passed to close()
        """
        raise NotImplementedError

    @abstractmethod
    def close(self, handle: Notification):
        """ Dismisses a notification. Closing None or an already closed handle does nothing. """
        raise NotImplementedError

    @abstractmethod
    def modal(self, tag, source):
        """ Shows a blocking message that the user must acknowledge. """
        raise NotImplementedError


class LoggingNotifier(NotificationEmitter):
    """
    A notification emitter that writes notifications to the log.
    Used when the application does not provide its own emitter.
    """
    levels = {
        Severity.LOADING: logging.INFO,
        Severity.OK: logging.INFO,
        Severity.WARNING: logging.WARNING
    }

    def __init__(self, log=logger):
        self.logger = log
        self._keys = itertools.count(1)

    def add(self, tag, source, severity: Severity, auto_dismiss_ms=None, detail=None):
        handle = Notification(next(self._keys), tag, source, severity, auto_dismiss_ms, detail)
        if detail is None:
            self.logger.log(self.levels[severity], "[%s] %s", source, tag)
        else:
            self.logger.log(self.levels[severity], "[%s] %s: %s", source, tag, detail)
        return handle

    def close(self, handle):
        if handle is None or handle.closed:
            return
        handle.closed = True
        self.logger.debug("[%s] %s dismissed", handle.source, handle.tag)

    def modal(self, tag, source):
        self.logger.error("[%s] %s", source, tag)
