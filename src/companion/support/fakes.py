"""
Scriptable stand-ins for the external collaborators, for use in tests.
"""
import inspect
from collections import defaultdict

from companion.notify import Notification, NotificationEmitter
from companion.outcome import CallResult
from companion.protocol.hub import HubClosedEvent, HubConnectionError, RemoteCallHub
from companion.window import WindowHost


class FakeHub(RemoteCallHub):
    """
    A hub whose connection attempts and replies are set up by the test.

    - refusals: how many connect() calls fail before one succeeds. float('inf') never connects.
    - replies: maps (hub, function) to a CallResult, or to a callable taking the call arguments
      that returns a CallResult or an awaitable of one. Unlisted calls succeed with no value.
    - journal: ('call', function) when a call starts and ('done', function) when its reply is
      returned, in order.
    """

    def __init__(self, refusals=0):
        super().__init__()
        self.refusals = refusals
        self.replies = {}
        self.calls = []
        self.journal = []
        self.connect_count = 0
        self.reset_count = 0
        self.closed = False
        self._connected = False
        self._client_functions = defaultdict(list)

    @property
    def connected(self):
        return self._connected

    async def connect(self):
        self.connect_count += 1
        if self.refusals > 0:
            self.refusals -= 1
            raise HubConnectionError("connection refused")
        self._connected = True

    def reset(self):
        self.reset_count += 1
        self._connected = False

    def close(self):
        self.closed = True
        self._connected = False

    def reply(self, hub, function, result):
        self.replies[(hub, function)] = result

    async def call(self, hub, function, *args, timeout=None):
        self.calls.append((hub, function, args, timeout))
        self.journal.append(('call', function))
        reply = self.replies.get((hub, function), CallResult.ok())
        if callable(reply):
            reply = reply(*args)
        if inspect.isawaitable(reply):
            reply = await reply
        self.journal.append(('done', function))
        return reply

    def called(self, function):
        """ the argument tuples of each call made to the named function """
        return [args for hub, f, args, timeout in self.calls if f == function]

    def subscribe(self, hub, function, handler):
        self._client_functions[(hub, function)].append(handler)

    def push(self, hub, function, *args):
        for handler in self._client_functions[(hub, function)]:
            handler(*args)

    def drop(self, reason='connection lost'):
        self._connected = False
        self.events.fire(HubClosedEvent(self, reason))


class FakeNotifier(NotificationEmitter):
    def __init__(self):
        self.added = []
        self.closed = []
        self.modals = []

    def add(self, tag, source, severity, auto_dismiss_ms=None, detail=None):
        handle = Notification(len(self.added) + 1, tag, source, severity, auto_dismiss_ms, detail)
        self.added.append(handle)
        return handle

    def close(self, handle):
        if handle is None or handle.closed:
            return
        handle.closed = True
        self.closed.append(handle)

    def modal(self, tag, source):
        self.modals.append(tag)

    def tags(self):
        return [n.tag for n in self.added]

    def last(self, tag):
        matches = [n for n in self.added if n.tag == tag]
        return matches[-1] if matches else None


class FakeWindow:
    def __init__(self, options, on_close):
        self.options = options
        self.on_close = on_close
        self.closed = False


class FakeWindowHost(WindowHost):
    """
    :param strict: when True, closing an already closed window raises, as some window toolkits do.
    """

    def __init__(self, strict=False):
        self.strict = strict
        self.opened = []

    def open(self, options, on_close):
        window = FakeWindow(options, on_close)
        self.opened.append(window)
        return window

    def close(self, handle: FakeWindow):
        if handle.closed:
            if self.strict:
                raise RuntimeError("window already closed")
            return
        handle.closed = True
