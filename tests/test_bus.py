"""Tests for the update bus."""
from unittest.mock import MagicMock

import pytest

from capacity_sync.schemas import EntityType
from capacity_sync.sync.bus import UpdateBus


@pytest.fixture
def bus():
    return UpdateBus(clock=lambda: 42.0)


class TestRouting:
    """Tests for manifest-scoped delivery."""

    def test_delivers_to_subscribed_type(self, bus):
        """A member receives team roster changes."""
        handler = MagicMock()
        bus.subscribe("member-1", EntityType.TEAM_MEMBER, handler)

        result = bus.publish(EntityType.TEAM, "team-1", {"roster": []}, ["roster"])

        handler.assert_called_once()
        event = handler.call_args.args[0]
        assert event.publisher_type == "team"
        assert event.publisher_id == "team-1"
        assert event.relevant_field_ids == ("roster",)
        assert event.timestamp == 42.0
        assert result.delivered_to == ["member-1"]

    def test_irrelevant_fields_not_delivered(self, bus):
        """A change outside the subscription reaches nobody."""
        handler = MagicMock()
        bus.subscribe("member-1", EntityType.TEAM_MEMBER, handler)

        result = bus.publish(EntityType.TEAM, "team-1", {"description": "x"}, ["description"])

        handler.assert_not_called()
        assert result.delivered_to == []

    def test_unpublished_fields_dropped(self, bus):
        """Fields the publisher does not publish are never broadcast."""
        handler = MagicMock()
        bus.subscribe("team-1", EntityType.TEAM, handler)

        result = bus.publish(
            EntityType.TEAM_MEMBER, "member-1", {}, ["internalNotes", "weeklyCapacity"]
        )

        assert result.dropped_field_ids == ("internalNotes",)
        assert handler.call_args.args[0].relevant_field_ids == ("weeklyCapacity",)

    def test_each_subscriber_gets_its_fields(self, bus):
        """Events carry only the receiving subscriber's relevant fields."""
        member_handler = MagicMock()
        feature_handler = MagicMock()
        bus.subscribe("member-1", EntityType.TEAM_MEMBER, member_handler)
        bus.subscribe("feature-1", EntityType.FEATURE, feature_handler)

        bus.publish(EntityType.TEAM, "team-1", {}, ["title", "roster"])

        assert member_handler.call_args.args[0].relevant_field_ids == ("roster",)
        assert feature_handler.call_args.args[0].relevant_field_ids == ("title", "roster")

    def test_registration_order(self, bus):
        """Delivery follows registration order."""
        calls = []
        for subscriber_id in ["m3", "m1", "m2"]:
            bus.subscribe(subscriber_id, EntityType.TEAM_MEMBER, lambda e, s=subscriber_id: calls.append(s))

        result = bus.publish(EntityType.TEAM, "team-1", {}, ["roster"])

        assert calls == ["m3", "m1", "m2"]
        assert result.delivered_to == ["m3", "m1", "m2"]

    def test_publisher_filter(self, bus):
        """Subscribers can restrict delivery to given publishers."""
        handler = MagicMock()
        bus.subscribe("member-1", EntityType.TEAM_MEMBER, handler, publisher_ids=["team-2"])

        bus.publish(EntityType.TEAM, "team-1", {}, ["roster"])
        handler.assert_not_called()

        bus.publish(EntityType.TEAM, "team-2", {}, ["roster"])
        handler.assert_called_once()


class TestFailures:
    """Tests for handler failures and teardown."""

    def test_raising_handler_does_not_stop_delivery(self, bus):
        """Other subscribers still receive the event."""
        failing = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        bus.subscribe("m1", EntityType.TEAM_MEMBER, failing)
        bus.subscribe("m2", EntityType.TEAM_MEMBER, healthy)

        result = bus.publish(EntityType.TEAM, "team-1", {}, ["roster"])

        healthy.assert_called_once()
        assert result.failed == ["m1"]
        assert result.delivered_to == ["m2"]

    def test_unsubscribe(self, bus):
        """Unsubscribed handlers receive nothing."""
        handler = MagicMock()
        bus.subscribe("m1", EntityType.TEAM_MEMBER, handler)

        assert bus.unsubscribe("m1") is True
        assert bus.unsubscribe("m1") is False
        bus.publish(EntityType.TEAM, "team-1", {}, ["roster"])

        handler.assert_not_called()

    def test_unsubscribed_mid_publish_is_skipped(self, bus):
        """A subscriber torn down by an earlier handler is not called."""
        second = MagicMock()
        bus.subscribe("m1", EntityType.TEAM_MEMBER, lambda event: bus.unsubscribe("m2"))
        bus.subscribe("m2", EntityType.TEAM_MEMBER, second)

        result = bus.publish(EntityType.TEAM, "team-1", {}, ["roster"])

        second.assert_not_called()
        assert result.delivered_to == ["m1"]

    def test_subscribed_mid_publish_waits(self, bus):
        """A subscriber added by a handler starts with the next publish."""
        late = MagicMock()

        def add_late_subscriber(event):
            if not bus.is_subscribed("m2"):
                bus.subscribe("m2", EntityType.TEAM_MEMBER, late)

        bus.subscribe("m1", EntityType.TEAM_MEMBER, add_late_subscriber)

        bus.publish(EntityType.TEAM, "team-1", {}, ["roster"])
        late.assert_not_called()

        bus.publish(EntityType.TEAM, "team-1", {}, ["roster"])
        late.assert_called_once()
