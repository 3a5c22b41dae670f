"""
Companion Connections

Keeps a local companion process reachable, and runs the board operations (verify, upload, serial
monitor, plotter) that need it.

- RemoteCallHub: request/response channel to the companion, grouped into hubs (Code, SerialMonitor,
  Window, Utils). WSHubsClient implements it over a websocket.
- ProcessLauncher: starts the companion executable on the listen port.
- ConnectionManager: connects, starts the companion when it is not there, retries for a few
  seconds, and tells the user when it never shows up. A connected companion that stops answering
  is restarted on the next use.
- PortTracker: owns the serial port and plotter window in use, and closes them before the next
  operation takes the port.
- CommandGateway: the operations themselves. Only one runs at a time; a call made while another
  is running is dropped.
- Companion: wires the above from the configuration.

## Threading

Everything runs on one asyncio event loop. The websocket is read on a background thread and the
process launcher watches for exit on another; both hand their results back to the loop, so none of
the state above is touched off the loop thread.
"""
