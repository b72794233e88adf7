"""
Tests for the simulated network transport.
"""

from unittest.mock import Mock

import pytest

from gossipsim.scheduler import EventScheduler
from gossipsim.topology import PeerLink
from gossipsim.transport import Endpoint, SimulatedTransport, TransportError


@pytest.fixture
def scheduler():
    return EventScheduler()


@pytest.fixture
def transport(scheduler):
    """Create a lossless transport with 10ms default latency"""
    return SimulatedTransport(scheduler, latency_ms=10.0)


@pytest.fixture
def connected(transport):
    """Two endpoints with callbacks and a channel from node 0 to node 1"""
    a = transport.open_endpoint(0)
    b = transport.open_endpoint(1)
    a_callback = Mock()
    b_callback = Mock()
    transport.on_receive(a, a_callback)
    transport.on_receive(b, b_callback)
    channel = transport.connect(a, 1)
    return a, b, channel, a_callback, b_callback


class TestEndpoints:
    """Tests for endpoint management"""

    def test_open_endpoint(self, transport):
        endpoint = transport.open_endpoint(3)

        assert isinstance(endpoint, Endpoint)
        assert endpoint.node_id == 3
        assert endpoint.open
        assert transport.open_endpoint(3) is endpoint

    def test_reopen_after_close(self, transport):
        endpoint = transport.open_endpoint(3)
        transport.close(endpoint)

        reopened = transport.open_endpoint(3)
        assert reopened is not endpoint
        assert reopened.open

    def test_connect_to_unknown_node_raises(self, transport):
        endpoint = transport.open_endpoint(0)

        with pytest.raises(TransportError):
            transport.connect(endpoint, 99)

    def test_connect_to_closed_node_raises(self, transport):
        a = transport.open_endpoint(0)
        b = transport.open_endpoint(1)
        transport.close(b)

        with pytest.raises(ConnectionError):
            transport.connect(a, 1)


class TestDelivery:
    """Tests for message delivery"""

    def test_message_delivered_after_latency(self, scheduler, transport, connected):
        _, b, channel, _, b_callback = connected

        assert channel.send(b"hello")

        scheduler.run_until(0.0099, discard_remaining=False)
        b_callback.assert_not_called()

        scheduler.run_until(1.0)
        b_callback.assert_called_once()
        data, inbound = b_callback.call_args[0]
        assert data == b"hello"
        assert inbound.local is b
        assert inbound.remote_id == 0
        assert inbound.reverse is channel

    def test_reply_over_reverse_channel(self, scheduler, transport, connected):
        _, _, channel, a_callback, _ = connected

        channel.reverse.send(b"pong")
        scheduler.run_until(1.0)

        a_callback.assert_called_once()
        assert a_callback.call_args[0][0] == b"pong"

    def test_link_latency_used_for_channel(self, scheduler, transport):
        transport.register_link(PeerLink.between(0, 1, 250.0))
        a = transport.open_endpoint(0)
        b = transport.open_endpoint(1)
        times = []
        callback = Mock(side_effect=lambda data, ch: times.append(scheduler.now()))
        transport.on_receive(b, callback)

        channel = transport.connect(a, 1)
        assert channel.latency_ms == 250.0
        channel.send(b"x")
        scheduler.run_until(1.0)

        assert times == [0.25]

    def test_counters(self, scheduler, transport, connected):
        _, _, channel, _, _ = connected
        channel.send(b"abc")
        channel.send(b"de")
        scheduler.run_until(1.0)

        stats = transport.stats()
        assert stats["messages_sent"] == 2
        assert stats["messages_delivered"] == 2
        assert stats["bytes_sent"] == 5
        assert transport.in_flight == 0


class TestFailures:
    """Tests for closed channels and lossy links"""

    def test_send_on_closed_channel_fails(self, transport, connected):
        _, _, channel, _, _ = connected
        channel.close()

        assert channel.send(b"x") is False
        assert transport.messages_sent == 0

    def test_send_to_closed_remote_fails(self, transport, connected):
        _, b, channel, _, _ = connected
        transport.close(b)

        assert channel.send(b"x") is False

    def test_message_to_endpoint_closed_in_flight_is_discarded(
        self, scheduler, transport, connected
    ):
        _, b, channel, _, b_callback = connected
        assert channel.send(b"x")

        transport.close(b)
        scheduler.run_until(1.0)

        b_callback.assert_not_called()
        assert transport.messages_discarded == 1

    def test_drop_rate_loses_messages(self, scheduler):
        transport = SimulatedTransport(scheduler, latency_ms=1.0, drop_rate=0.5, seed=3)
        a = transport.open_endpoint(0)
        b = transport.open_endpoint(1)
        callback = Mock()
        transport.on_receive(b, callback)
        channel = transport.connect(a, 1)

        results = [channel.send(b"x") for _ in range(200)]
        scheduler.run_until(1.0)

        assert all(results)
        assert transport.messages_dropped > 0
        assert callback.call_count == 200 - transport.messages_dropped

    def test_invalid_drop_rate(self, scheduler):
        with pytest.raises(ValueError):
            SimulatedTransport(scheduler, drop_rate=1.0)
