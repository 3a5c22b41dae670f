import logging
import platform
import subprocess
import threading

from companion.support.events import LoopEventSource

logger = logging.getLogger(__name__)

# executable locations under <app_path>/res/web2board, by platform
WINDOWS_EXECUTABLE = 'win32/web2boardLauncher.exe'
OSX_EXECUTABLE = 'darwin/Web2Board.app/Contents/MacOS/web2boardLauncher'
LINUX64_EXECUTABLE = 'linux/web2boardLauncher'
LINUX32_EXECUTABLE = 'linux32/web2boardLauncher'

_64BIT_MACHINES = ('x86_64', 'amd64', 'aarch64', 'arm64')


class LauncherError(Exception):
    """ The companion process could not be started. """


class ProcessExitedEvent:
    def __init__(self, process, code):
        self.process = process
        self.code = code


def executable_path(app_path, system=None, machine=None):
    """
    Selects the companion executable for the platform.
    >>> executable_path('/app', 'Linux', 'x86_64')
    '/app/res/web2board/linux/web2boardLauncher'
    >>> executable_path('/app', 'Linux', 'i686')
    '/app/res/web2board/linux32/web2boardLauncher'
    """
    system = (system or platform.system()).lower()
    machine = (machine or platform.machine()).lower()
    if system == 'windows':
        relative = WINDOWS_EXECUTABLE
    elif system == 'darwin':
        relative = OSX_EXECUTABLE
    elif machine in _64BIT_MACHINES:
        relative = LINUX64_EXECUTABLE
    else:
        relative = LINUX32_EXECUTABLE
    return app_path.rstrip('/\\') + '/res/web2board/' + relative


class LaunchedProcess:
    """ A handle to a started companion process. """

    def __init__(self, process: subprocess.Popen, listen_port):
        self.process = process
        self.listen_port = listen_port

    @property
    def pid(self):
        return self.process.pid

    @property
    def running(self):
        return self.process.poll() is None

    def wait_for_exit(self):
        return self.process.wait()


class ProcessLauncher:
    """
    Starts the companion executable, listening on a given port.

    Fires ProcessExitedEvent on events when a launched process exits. The event is delivered on the
    event loop given, or on the watcher thread when there is none.

    :param executable: the companion image to run
    :param cwd: the working directory for the process
    """

    def __init__(self, executable, cwd=None, loop=None):
        self.executable = executable
        self.cwd = cwd
        self.events = LoopEventSource(loop)

    def launch(self, listen_port) -> LaunchedProcess:
        logger.info("starting companion %s on port %s", self.executable, listen_port)
        try:
            p = subprocess.Popen((self.executable, '--port', str(listen_port)), cwd=self.cwd,
                                 stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except (OSError, ValueError) as e:
            logger.error("unable to start companion %s: %s", self.executable, e)
            raise LauncherError(str(e)) from e
        handle = LaunchedProcess(p, listen_port)
        threading.Thread(target=self._watch, args=(handle,), name='companion-process-watcher',
                         daemon=True).start()
        return handle

    def _watch(self, handle: LaunchedProcess):
        code = handle.wait_for_exit()
        logger.info("companion closed with code: %s", code)
        self.events.fire(ProcessExitedEvent(handle, code))
