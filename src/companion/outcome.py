"""
Result types shared by the remote-call wrappers and the command gateway.

Every remote call resolves to a CallResult, whether the companion replied with an error, the call
timed out or the hub went away. The gateway turns those into an Outcome that carries an ErrorKind
tag, and that is all the notification layer ever sees.
"""
from enum import Enum

from companion.support.mixins import CommonEqualityMixin, StringerMixin


class ErrorKind(Enum):
    COMPILE_ERROR = 'compile_error'
    BOARD_NOT_READY = 'board_not_ready'
    UPLOAD_ERROR = 'upload_error'
    NO_PORT_FOUND = 'no_port_found'
    CONNECTION_LOST = 'connection_lost'
    COMPANION_UNDETECTED = 'companion_undetected'
    TIMEOUT = 'timeout'
    HUB_CLOSED = 'hub_closed'


# titles used by the companion in structured upload error replies
COMPILE_ERROR_TITLE = 'COMPILE_ERROR'
BOARD_NOT_READY_TITLE = 'BOARD_NOT_READY'


class Board(CommonEqualityMixin, StringerMixin):
    """ The target board, as selected by the caller. """

    def __init__(self, mcu: str):
        self._mcu = mcu

    @property
    def mcu(self) -> str:
        return self._mcu


class CallResult(CommonEqualityMixin, StringerMixin):
    """
    The outcome of a single remote call.

    :param succeeded:   True when the companion replied with success
    :param value:       the reply value on success
    :param error:       the error payload on failure, as sent by the companion or raised locally
    :param error_kind:  set when the failure happened in the transport rather than in the companion
    """

    def __init__(self, succeeded, value=None, error=None, error_kind: ErrorKind=None):
        self.succeeded = succeeded
        self.value = value
        self.error = error
        self.error_kind = error_kind

    @classmethod
    def ok(cls, value=None):
        return cls(True, value=value)

    @classmethod
    def failed(cls, error=None, kind: ErrorKind=None):
        return cls(False, error=error, error_kind=kind)

    def __bool__(self):
        return self.succeeded


class Outcome(CommonEqualityMixin, StringerMixin):
    """ The observable result of one high-level operation. """

    def __init__(self, succeeded, error_kind: ErrorKind=None, detail=None):
        self.succeeded = succeeded
        self.error_kind = error_kind
        self.detail = detail

    @classmethod
    def success(cls, detail=None):
        return cls(True, detail=detail)

    @classmethod
    def failure(cls, kind: ErrorKind, detail=None):
        return cls(False, error_kind=kind, detail=detail)


def _error_title(error):
    return error.get('title') if isinstance(error, dict) else None


def compile_error_detail(error):
    """
    Extracts the compiler diagnostics from a compile failure payload.
    >>> compile_error_detail({'title': 'COMPILE_ERROR', 'stdErr': 'syntax error'})
    'syntax error'
    >>> compile_error_detail('boom')
    'boom'
    """
    if isinstance(error, dict) and 'stdErr' in error:
        return error['stdErr']
    return error


def classify_upload_error(error) -> Outcome:
    """
    Maps an upload failure payload to an outcome.
    >>> classify_upload_error({'title': 'BOARD_NOT_READY'}).error_kind
    <ErrorKind.BOARD_NOT_READY: 'board_not_ready'>
    """
    title = _error_title(error)
    if title == COMPILE_ERROR_TITLE:
        return Outcome.failure(ErrorKind.COMPILE_ERROR, compile_error_detail(error))
    if title == BOARD_NOT_READY_TITLE:
        return Outcome.failure(ErrorKind.BOARD_NOT_READY)
    return Outcome.failure(ErrorKind.UPLOAD_ERROR, error)
