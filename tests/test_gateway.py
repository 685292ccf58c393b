import pytest
from hypothesis import given, settings, strategies as st

from shiptrack.errors import InvalidTopic
from shiptrack.realtime.gateway import ConnectionGateway, ConnectionState
from shiptrack.realtime.registry import TopicRegistry


def drain(conn):
    out = []
    while not conn.queue.empty():
        out.append(conn.queue.get_nowait())
    return out


@pytest.fixture
def gateway():
    return ConnectionGateway(TopicRegistry())


def test_publish_without_subscribers_is_silent(gateway):
    conn = gateway.connect()
    assert gateway.publish("TK1000000001", "shipmentUpdated", {"x": 1}) == 0
    assert drain(conn) == []


def test_publish_delivers_in_order_to_each_subscriber(gateway):
    a = gateway.connect()
    b = gateway.connect()
    gateway.join(a.id, "shipments_room")
    gateway.join(b.id, "shipments_room")

    for n in range(3):
        assert gateway.publish("shipments_room", "tick", {"n": n}) == 2

    for conn in (a, b):
        assert [m["data"]["n"] for m in drain(conn)] == [0, 1, 2]


def test_payloadless_event_has_empty_data(gateway):
    conn = gateway.connect()
    gateway.join(conn.id, "users_room")
    gateway.publish("users_room", "users_updated")
    assert drain(conn) == [{"event": "users_updated", "data": {}}]


def test_only_events_published_while_subscribed(gateway):
    conn = gateway.connect()
    gateway.publish("client_3", "before")
    gateway.join(conn.id, "client_3")
    gateway.publish("client_3", "during")
    gateway.leave(conn.id, "client_3")
    gateway.publish("client_3", "after")
    assert [m["event"] for m in drain(conn)] == ["during"]


def test_disconnect_cancels_every_subscription(gateway):
    conn = gateway.connect()
    for topic in ("TK1000000001", "shipments_room", "session_s1"):
        gateway.join(conn.id, topic)

    gateway.disconnect(conn.id)

    assert conn.state is ConnectionState.CLOSED
    for topic in ("TK1000000001", "shipments_room", "session_s1"):
        assert gateway.publish(topic, "late") == 0
    assert drain(conn) == []
    assert gateway.registry.connection_count == 0


def test_disconnect_is_idempotent_and_join_after_is_noop(gateway):
    conn = gateway.connect()
    gateway.disconnect(conn.id)
    gateway.disconnect(conn.id)
    gateway.disconnect("unknown")
    assert gateway.join(conn.id, "shipments_room") is False
    assert gateway.registry.subscribers_of("shipments_room") == frozenset()


def test_join_rejects_malformed_topic(gateway):
    conn = gateway.connect()
    with pytest.raises(InvalidTopic):
        gateway.join(conn.id, "not a topic")
    with pytest.raises(InvalidTopic):
        gateway.join(conn.id, None)


def test_full_queue_drops_instead_of_raising():
    gateway = ConnectionGateway(TopicRegistry(), queue_size=2)
    slow = gateway.connect()
    fast = gateway.connect()
    gateway.join(slow.id, "rates_room")
    gateway.join(fast.id, "rates_room")

    assert gateway.publish("rates_room", "rates_updated") == 2
    assert gateway.publish("rates_room", "rates_updated") == 2
    drain(fast)
    assert gateway.publish("rates_room", "rates_updated") == 1

    assert slow.dropped == 1
    assert len(drain(slow)) == 2


CONNS = ("a", "b", "c")
ops = st.lists(
    st.one_of(
        st.tuples(st.just("join"), st.sampled_from(CONNS)),
        st.tuples(st.just("leave"), st.sampled_from(CONNS)),
        st.tuples(st.just("disconnect"), st.sampled_from(CONNS)),
        st.tuples(st.just("publish"), st.integers(min_value=0, max_value=10_000)),
    ),
    max_size=60,
)


@settings(max_examples=150, deadline=None)
@given(ops)
def test_each_connection_sees_exactly_what_was_published_while_joined(sequence):
    gateway = ConnectionGateway(TopicRegistry(), queue_size=1000)
    conns = {name: gateway.connect() for name in CONNS}
    joined: set[str] = set()
    closed: set[str] = set()
    expected: dict[str, list[int]] = {name: [] for name in CONNS}

    for op, arg in sequence:
        if op == "join":
            gateway.join(conns[arg].id, "TK1000000001")
            if arg not in closed:
                joined.add(arg)
        elif op == "leave":
            gateway.leave(conns[arg].id, "TK1000000001")
            joined.discard(arg)
        elif op == "disconnect":
            gateway.disconnect(conns[arg].id)
            closed.add(arg)
            joined.discard(arg)
        else:
            gateway.publish("TK1000000001", "tick", {"n": arg})
            for name in joined:
                expected[name].append(arg)

    for name, conn in conns.items():
        assert [m["data"]["n"] for m in drain(conn)] == expected[name]
