from shiptrack.realtime.registry import TopicRegistry


def test_subscribers_of_unknown_topic_is_empty():
    reg = TopicRegistry()
    assert reg.subscribers_of("TK0000000000") == frozenset()


def test_subscribe_is_idempotent():
    reg = TopicRegistry()
    reg.subscribe("c1", "shipments_room")
    reg.subscribe("c1", "shipments_room")
    assert reg.subscribers_of("shipments_room") == {"c1"}
    assert reg.topics_of("c1") == {"shipments_room"}


def test_unsubscribe_absent_is_noop():
    reg = TopicRegistry()
    reg.unsubscribe("ghost", "users_room")
    reg.subscribe("c1", "users_room")
    reg.unsubscribe("c2", "users_room")
    assert reg.subscribers_of("users_room") == {"c1"}


def test_empty_topics_are_pruned():
    reg = TopicRegistry()
    reg.subscribe("c1", "client_7")
    assert reg.topic_count == 1
    reg.unsubscribe("c1", "client_7")
    assert reg.topic_count == 0


def test_drop_connection_leaves_no_dangling_references():
    reg = TopicRegistry()
    for topic in ("TK1000000001", "shipments_room", "session_abc"):
        reg.subscribe("c1", topic)
    reg.subscribe("c2", "shipments_room")

    reg.drop_connection("c1")

    assert reg.subscribers_of("TK1000000001") == frozenset()
    assert reg.subscribers_of("session_abc") == frozenset()
    assert reg.subscribers_of("shipments_room") == {"c2"}
    assert reg.topics_of("c1") == frozenset()
    assert reg.topic_count == 1


def test_drop_connection_twice_and_unknown():
    reg = TopicRegistry()
    reg.subscribe("c1", "branches_room")
    reg.drop_connection("c1")
    reg.drop_connection("c1")
    reg.drop_connection("never-seen")
    assert reg.connection_count == 0


def test_subscribers_of_returns_snapshot():
    reg = TopicRegistry()
    reg.subscribe("c1", "rates_room")
    snap = reg.subscribers_of("rates_room")
    reg.subscribe("c2", "rates_room")
    assert snap == {"c1"}
