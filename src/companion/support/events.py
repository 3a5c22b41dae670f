import asyncio


class EventSource(object):

    def __init__(self):
        self._handlers = []

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def add(self, handler):
        if handler not in self._handlers:
            self._handlers.append(handler)
        return self

    def remove(self, handler):
        if handler in self._handlers:
            self._handlers.remove(handler)
        return self

    def handlers(self):
        return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        self._fire(*args, **kwargs)

    def _fire(self, *args, **kwargs):
        # handlers may unsubscribe while being notified
        for handler in tuple(self._handlers):
            handler(*args, **kwargs)


class LoopEventSource(EventSource):
    """
    fire() may be called from any thread. The handlers are always invoked on the
    event loop given at construction, so listeners never see a background thread.
    """
    def __init__(self, loop: asyncio.AbstractEventLoop=None):
        super().__init__()
        self.loop = loop

    def fire(self, *args, **kwargs):
        loop = self.loop
        if loop is None or loop.is_closed():
            self._fire(*args, **kwargs)
        else:
            loop.call_soon_threadsafe(lambda: self._fire(*args, **kwargs))
