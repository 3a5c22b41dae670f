import logging
import threading

logger = logging.getLogger(__name__)


class BackgroundLoop:
    """ Repeatedly runs loop() on a daemon thread until stopped.
        Exceptions from loop() are logged and stop the thread, since a blocking reader that failed
        once will keep failing.
    """

    def __init__(self, name=None, log=logger):
        self.name = name
        self.stop_event = threading.Event()
        self.background_thread = None
        self.logger = log

    def start(self):
        if self.background_thread is None:
            t = threading.Thread(target=self._run, name=self.name, daemon=True)
            self.background_thread = t
            t.start()

    def _run(self):
        while self.running():
            try:
                self.loop()
            except Exception as e:
                self.logger.exception(e)
                self.stop_event.set()
        self.logger.debug("background thread %s exiting", self.name)

    def loop(self):
        raise NotImplementedError

    def running(self):
        return not self.stop_event.is_set()

    def stop(self, join=False):
        self.stop_event.set()
        thread = self.background_thread
        self.background_thread = None
        if join and thread and thread is not threading.current_thread():
            thread.join()
