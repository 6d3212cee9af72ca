"""
Tests for settlement event publishing
"""

import json

from settlement.events import EventPublisher, EventType, SettlementEvent


class TestEventPublisher:
    """이벤트 발행/구독"""

    def test_subscriber_receives_event(self):
        publisher = EventPublisher()
        received = []
        publisher.subscribe(EventType.FEES_RECALCULATED, received.append)

        publisher.publish_fees_recalculated("m1", {"total_final_fees": 78}, ["matches"])

        assert len(received) == 1
        assert received[0].entity_id == "m1"
        assert received[0].invalidate_tags == ["matches"]

    def test_other_event_types_not_delivered(self):
        publisher = EventPublisher()
        received = []
        publisher.subscribe(EventType.OVERRIDE_APPLIED, received.append)

        publisher.publish_fees_recalculated("m1", {}, [])
        assert received == []

    def test_unsubscribe(self):
        publisher = EventPublisher()
        received = []
        publisher.subscribe(EventType.OVERRIDE_REMOVED, received.append)
        publisher.unsubscribe(EventType.OVERRIDE_REMOVED, received.append)

        publisher.publish_override_changed("m1", "p1", applied=False, tags=[])
        assert received == []

    def test_failing_subscriber_does_not_break_publish(self):
        publisher = EventPublisher()
        received = []

        def broken(event):
            raise RuntimeError("cache server down")

        publisher.subscribe(EventType.RECALCULATION_FAILED, broken)
        publisher.subscribe(EventType.RECALCULATION_FAILED, received.append)

        publisher.publish_recalculation_failed("m1", {"code": "RECALCULATION_FAILED"})
        assert len(received) == 1

    def test_event_log_bounded(self):
        publisher = EventPublisher(max_log_size=3)
        for i in range(5):
            publisher.publish_override_changed("m1", f"p{i}", applied=True, tags=[])

        events = publisher.get_recent_events()
        assert len(events) == 3
        assert events[-1].entity_id == "m1:p4"

    def test_override_event_type(self):
        publisher = EventPublisher()
        publisher.publish_override_changed("m1", "p1", applied=True, tags=[])
        publisher.publish_override_changed("m1", "p1", applied=False, tags=[])
        types = [e.event_type for e in publisher.get_recent_events()]
        assert types == [EventType.OVERRIDE_APPLIED, EventType.OVERRIDE_REMOVED]


class TestSettlementEvent:

    def test_to_json(self):
        event = SettlementEvent(
            event_type=EventType.MATCH_INFO_UPDATED,
            entity_type="match",
            entity_id="m1",
            data={"changed_fields": ["notes"]},
        )
        payload = json.loads(event.to_json())
        assert payload["event_type"] == "match.info_updated"
        assert payload["data"]["changed_fields"] == ["notes"]
        assert payload["source"] == "settlement"
