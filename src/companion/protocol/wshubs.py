"""
A RemoteCallHub that talks to the companion over a websocket, using the companion's hubs protocol.

Each frame is a JSON object:

- request:  {"hub": "CodeHub", "function": "compile", "args": [...], "ID": 12}
- reply:    {"ID": 12, "success": true, "reply": ...}
- push:     {"hub": "CodeHub", "function": "isCompiling", "args": [...]}

Sends happen on the event loop thread. Frames are read on a background thread and handed back
to the event loop, so replies and pushes are always processed on the loop.
"""
import asyncio
import itertools
import json
import logging
from collections import defaultdict

import websocket

from companion.outcome import CallResult, ErrorKind
from companion.protocol.background import BackgroundLoop
from companion.protocol.hub import HubClosedEvent, HubConnectionError, HubMessageErrorEvent, RemoteCallHub

logger = logging.getLogger(__name__)

SOCKET_ERRORS = (websocket.WebSocketException, OSError)


class MessagePump(BackgroundLoop):
    """
    Reads frames from a websocket and passes them to on_message(ws, text).
    When the socket fails, on_closed(ws, reason) is called once and the pump stops.
    Both callbacks are invoked on the background thread.
    """

    def __init__(self, ws, on_message, on_closed):
        super().__init__(name='companion-hub-reader')
        self.ws = ws
        self.on_message = on_message
        self.on_closed = on_closed

    def loop(self):
        ws = self.ws
        try:
            text = ws.recv()
        except SOCKET_ERRORS as e:
            self._closed(e)
            return
        if text:
            self.on_message(ws, text)
        elif not ws.connected:
            self._closed("closed by peer")

    def _closed(self, reason):
        if self.running():
            self.stop()
            self.on_closed(self.ws, reason)


class WSHubsClient(RemoteCallHub):
    """
    :param url: the websocket url of the companion, e.g. ws://127.0.0.1:9877
    :param connect_timeout: seconds to wait for the socket to open
    """

    def __init__(self, url, connect_timeout=5, websocket_module=websocket):
        super().__init__()
        self.url = url
        self.connect_timeout = connect_timeout
        self._websocket = websocket_module
        self._ws = None
        self._pump = None
        self._loop = None
        self._ids = itertools.count(1)
        self._requests = {}
        self._client_functions = defaultdict(list)

    @property
    def connected(self):
        return self._ws is not None and self._ws.connected

    async def connect(self):
        if self.connected:
            return
        loop = asyncio.get_running_loop()
        try:
            ws = await loop.run_in_executor(None, self._open_socket)
        except SOCKET_ERRORS as e:
            logger.debug("unable to connect to %s: %s", self.url, e)
            raise HubConnectionError("unable to connect to %s" % self.url) from e
        self._loop = loop
        self._ws = ws
        pump = self._pump = MessagePump(ws, self._post_message, self._post_closed)
        pump.start()
        logger.info("connected to companion at %s", self.url)

    def _open_socket(self):
        ws = self._websocket.create_connection(self.url, timeout=self.connect_timeout)
        ws.settimeout(None)
        return ws

    def reset(self):
        self._drop("client reset")

    def close(self):
        self._drop("client closed")

    def subscribe(self, hub, function, handler):
        handlers = self._client_functions[(hub, function)]
        if handler not in handlers:
            handlers.append(handler)

    async def call(self, hub, function, *args, timeout=None):
        ws = self._ws
        if ws is None:
            return CallResult.failed("not connected", ErrorKind.HUB_CLOSED)
        request_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        self._requests[request_id] = future
        try:
            try:
                ws.send(json.dumps({'hub': hub, 'function': function, 'args': list(args), 'ID': request_id}))
            except SOCKET_ERRORS as e:
                logger.warning("unable to send %s.%s: %s", hub, function, e)
                return CallResult.failed(str(e), ErrorKind.HUB_CLOSED)
            try:
                return await asyncio.wait_for(future, timeout)
            except asyncio.TimeoutError:
                logger.debug("%s.%s timed out after %ss", hub, function, timeout)
                return CallResult.failed("%s.%s timed out" % (hub, function), ErrorKind.TIMEOUT)
        finally:
            self._requests.pop(request_id, None)

    def _post_message(self, ws, text):
        self._post(self.process_message, ws, text)

    def _post_closed(self, ws, reason):
        self._post(self._closed, ws, reason)

    def _post(self, fn, *args):
        try:
            self._loop.call_soon_threadsafe(fn, *args)
        except RuntimeError:
            logger.debug("event loop closed, dropping frame")

    def process_message(self, ws, text):
        """ handles a frame on the event loop. Frames from a socket that has since been dropped are ignored. """
        if ws is not self._ws:
            return
        try:
            message = json.loads(text)
            if not isinstance(message, dict):
                raise ValueError("expected an object but got %r" % (message,))
        except ValueError as e:
            logger.error("Error receiving message: %s", e)
            self.events.fire(HubMessageErrorEvent(self, e))
            return
        if 'ID' in message:
            self._reply(message)
        elif 'function' in message:
            self._push(message)
        else:
            logger.error("Error receiving message: unrecognized frame %s", text)
            self.events.fire(HubMessageErrorEvent(self, ValueError(text)))

    def _reply(self, message):
        future = self._requests.pop(message['ID'], None)
        if future is None or future.done():
            logger.debug("ignoring reply for abandoned request %s", message['ID'])
            return
        reply = message.get('reply')
        future.set_result(CallResult.ok(reply) if message.get('success') else CallResult.failed(reply))

    def _push(self, message):
        key = (message.get('hub'), message['function'])
        handlers = self._client_functions.get(key)
        if not handlers:
            logger.debug("no handler for %s.%s", *key)
            return
        for handler in tuple(handlers):
            try:
                handler(*message.get('args', []))
            except Exception as e:
                logger.exception("handler for %s.%s failed: %s" % (key[0], key[1], e))

    def _closed(self, ws, reason):
        if ws is not self._ws:
            return
        logger.error("companion disconnected with error: %s", reason)
        self._drop(reason, ErrorKind.CONNECTION_LOST)
        self.events.fire(HubClosedEvent(self, reason))

    def _drop(self, reason, kind=ErrorKind.HUB_CLOSED):
        ws, pump = self._ws, self._pump
        self._ws = self._pump = None
        if pump is not None:
            pump.stop()
        if ws is not None:
            try:
                ws.close()
            except SOCKET_ERRORS as e:
                logger.debug("error closing socket: %s", e)
        requests, self._requests = self._requests, {}
        for future in requests.values():
            if not future.done():
                future.set_result(CallResult.failed(str(reason), kind))
