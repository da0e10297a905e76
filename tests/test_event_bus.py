from utils.event_bus import SEEN_RECORDED, EventBus

def test_bus_publish_subscribe():
    bus = EventBus()
    hits = []
    def h1(x): hits.append(("h1", x["item_id"]))
    def h2(x): hits.append(("h2", x["item_id"]))
    bus.subscribe(SEEN_RECORDED, h1)
    bus.subscribe(SEEN_RECORDED, h2)
    assert bus.publish(SEEN_RECORDED, {"item_id": "p1"}) == 2
    assert ("h1", "p1") in hits and ("h2", "p1") in hits

def test_failing_handler_does_not_reach_publisher():
    bus = EventBus()
    hits = []
    def bad(x): raise RuntimeError("ui update failed")
    bus.subscribe(SEEN_RECORDED, bad)
    bus.subscribe(SEEN_RECORDED, hits.append)
    assert bus.publish(SEEN_RECORDED, {"item_id": "p1"}) == 1
    assert hits == [{"item_id": "p1"}]

def test_unsubscribe():
    bus = EventBus()
    hits = []
    unsubscribe = bus.subscribe(SEEN_RECORDED, hits.append)
    unsubscribe()
    unsubscribe()
    assert bus.publish(SEEN_RECORDED, {}) == 0
    assert hits == []
