import asyncio
from unittest import IsolatedAsyncioTestCase
from unittest.mock import Mock

from hamcrest import assert_that, contains_exactly, empty, has_item, is_, is_not

from companion.connection import ConnectionManager, ConnectionState
from companion.connector.launcher import LauncherError
from companion.notify import Severity, Tags
from companion.outcome import CallResult, ErrorKind
from companion.protocol.hub import UTILS_HUB, HubMessageErrorEvent
from companion.support.fakes import FakeHub, FakeNotifier
from companion.support.retry_strategy import FixedRetryStrategy

never = float('inf')


class ConnectionManagerTest(IsolatedAsyncioTestCase):

    def setUp(self):
        self.hub = FakeHub()
        self.launcher = Mock()
        self.notifier = FakeNotifier()
        self.sut = self.manager()

    def manager(self, max_attempts=20):
        return ConnectionManager(self.hub, self.launcher, self.notifier, 9877,
                                 retry_strategy=FixedRetryStrategy(0), max_attempts=max_attempts)

    async def test_connects_and_registers(self):
        assert_that(await self.sut.ensure_connected(), is_(True))
        assert_that(self.sut.state, is_(ConnectionState.CONNECTED))
        assert_that(self.hub.called('setId'), is_([('Bitbloq',)]))
        self.launcher.launch.assert_not_called()

    async def test_start_toast_is_closed_once_connected(self):
        await self.sut.ensure_connected()
        toast = self.notifier.last(Tags.START_APP)
        assert_that(toast.severity, is_(Severity.LOADING))
        assert_that(toast.closed, is_(True))

    async def test_unreachable_companion_is_launched_once_and_escalates_on_twentieth_attempt(self):
        self.hub.refusals = never
        assert_that(await self.sut.ensure_connected(), is_(False))
        assert_that(self.hub.connect_count, is_(20))
        self.launcher.launch.assert_called_once_with(9877)
        assert_that(self.notifier.modals, is_([Tags.NOT_DETECTED]))
        assert_that(self.sut.state, is_(ConnectionState.DISCONNECTED))
        assert_that(self.notifier.last(Tags.START_APP).closed, is_(True))

    async def test_does_not_escalate_when_twentieth_attempt_connects(self):
        self.hub.refusals = 19
        assert_that(await self.sut.ensure_connected(), is_(True))
        assert_that(self.hub.connect_count, is_(20))
        assert_that(self.notifier.modals, is_(empty()))
        self.launcher.launch.assert_called_once_with(9877)

    async def test_escalation_follows_max_attempts(self):
        sut = self.manager(max_attempts=3)
        self.hub.refusals = never
        assert_that(await sut.ensure_connected(), is_(False))
        assert_that(self.hub.connect_count, is_(3))

    async def test_launch_failure_does_not_propagate(self):
        self.launcher.launch.side_effect = LauncherError("no such file")
        self.hub.refusals = never
        assert_that(await self.manager(max_attempts=2).ensure_connected(), is_(False))
        assert_that(self.notifier.modals, is_([Tags.NOT_DETECTED]))

    async def test_connected_companion_is_probed_instead_of_reconnected(self):
        await self.sut.ensure_connected()
        assert_that(await self.sut.ensure_connected(), is_(True))
        assert_that(self.hub.connect_count, is_(1))
        assert_that(self.hub.calls[-1], is_((UTILS_HUB, 'getId', (), 2.0)))
        self.launcher.launch.assert_not_called()

    async def test_stale_connection_is_dropped_relaunched_and_retried_from_zero(self):
        sut = self.manager(max_attempts=3)
        self.hub.refusals = 2
        assert_that(await sut.ensure_connected(), is_(True))
        self.launcher.launch.reset_mock()

        self.hub.reply(UTILS_HUB, 'getId', CallResult.failed("timed out", ErrorKind.TIMEOUT))
        self.hub.refusals = 2
        # two more failures would exhaust a counter that was not reset
        assert_that(await sut.ensure_connected(), is_(True))
        assert_that(self.hub.reset_count, is_(1))
        # started when the probe fails, and again on the first refusal of the new sequence
        assert_that(self.launcher.launch.call_count, is_(2))
        assert_that(self.notifier.modals, is_(empty()))
        assert_that(sut.state, is_(ConnectionState.CONNECTED))

    async def test_concurrent_callers_share_one_sequence(self):
        self.hub.refusals = 3
        results = await asyncio.gather(self.sut.ensure_connected(), self.sut.ensure_connected())
        assert_that(results, is_([True, True]))
        assert_that(self.hub.connect_count, is_(4))
        self.launcher.launch.assert_called_once_with(9877)

    async def test_failed_handshake_counts_as_failed_attempt(self):
        replies = iter([CallResult.failed("busy"), CallResult.ok()])
        self.hub.reply(UTILS_HUB, 'setId', lambda name: next(replies))
        assert_that(await self.sut.ensure_connected(), is_(True))
        assert_that(self.hub.connect_count, is_(2))
        assert_that(self.hub.reset_count, is_(1))
        self.launcher.launch.assert_called_once_with(9877)

    async def test_state_changes_are_published(self):
        listener = Mock()
        self.sut.events.add(listener)
        await self.sut.ensure_connected()
        states = [c.args[0].new_state for c in listener.call_args_list]
        assert_that(states, contains_exactly(ConnectionState.CONNECTING, ConnectionState.CONNECTED))

    async def test_unexpected_close_after_connecting_warns(self):
        await self.sut.ensure_connected()
        self.hub.drop()
        assert_that(self.sut.state, is_(ConnectionState.DISCONNECTED))
        warning = self.notifier.last(Tags.CLOSED_UNEXPECTEDLY)
        assert_that(warning.severity, is_(Severity.WARNING))

    async def test_close_before_any_connection_is_silent(self):
        self.hub.drop()
        assert_that(self.notifier.tags(), is_not(has_item(Tags.CLOSED_UNEXPECTEDLY)))

    async def test_reconnects_after_unexpected_close(self):
        await self.sut.ensure_connected()
        self.hub.drop()
        assert_that(await self.sut.ensure_connected(), is_(True))
        assert_that(self.hub.connect_count, is_(2))

    async def test_malformed_message_closes_hub(self):
        await self.sut.ensure_connected()
        self.hub.events.fire(HubMessageErrorEvent(self.hub, ValueError("not json")))
        assert_that(self.hub.closed, is_(True))
        assert_that(self.sut.state, is_(ConnectionState.DISCONNECTED))
        assert_that(self.notifier.tags(), has_item(Tags.CLOSED_UNEXPECTEDLY))
