"""Tests for entity manifests and the registry."""
from types import MappingProxyType

import pytest

from capacity_sync.manifest import (
    COMMON_FIELDS,
    MANIFESTS,
    EntityManifest,
    ManifestRegistry,
    create_array_item_field,
    create_field,
    create_nested_field,
)
from capacity_sync.schemas import EntityType


@pytest.fixture
def registry():
    return ManifestRegistry()


class TestFieldHelpers:
    """Tests for field descriptor helpers."""

    def test_path_defaults_to_id(self):
        """Top-level fields use their id as path."""
        field = create_field("roster", "Roster", critical=True)
        assert field.path == "roster"
        assert field.critical

    def test_nested_field(self):
        """Nested fields use dotted ids."""
        field = create_nested_field("season", "startDate", "Season Start")
        assert field.id == "season.startDate"
        assert field.path == "season.startDate"

    def test_array_item_field(self):
        """Array item fields use the [] marker."""
        field = create_array_item_field("roster", "allocationPercent", "Allocation")
        assert field.id == "roster[].allocationPercent"


class TestShippedManifests:
    """Tests for the manifests of every entity type."""

    def test_all_types_have_manifests(self):
        """Every entity type is declared."""
        assert set(MANIFESTS) == set(EntityType)

    def test_common_fields_published_everywhere(self, registry):
        """Title and description are published by every type."""
        for entity_type in EntityType:
            for field in COMMON_FIELDS:
                assert registry.does_publish(entity_type, field.id)

    def test_manifests_are_clean(self, registry):
        """No subscription points at an undeclared field."""
        assert registry.validate() == []


class TestRegistryLookups:
    """Tests for registry lookups."""

    def test_does_publish(self, registry):
        """Declared fields are published, others are not."""
        assert registry.does_publish(EntityType.TEAM, "roster")
        assert not registry.does_publish(EntityType.TEAM, "hoursPerDay")

    def test_unknown_type(self, registry):
        """Unknown types publish nothing."""
        assert not registry.does_publish("spaceship", "title")
        assert registry.subscribed_fields("spaceship", EntityType.TEAM) == ()

    def test_subscriptions(self, registry):
        """Members listen to team rosters; teams listen to member capacity."""
        assert registry.does_subscribe_to(EntityType.TEAM_MEMBER, EntityType.TEAM)
        assert "roster" in registry.subscribed_fields(EntityType.TEAM_MEMBER, EntityType.TEAM)
        assert "effectiveCapacity" in registry.subscribed_fields(EntityType.TEAM, EntityType.TEAM_MEMBER)
        assert not registry.does_subscribe_to(EntityType.TEAM_MEMBER, EntityType.META)

    def test_is_critical(self, registry):
        """Critical flags come from the descriptors."""
        assert registry.is_critical(EntityType.TEAM, "roster")
        assert not registry.is_critical(EntityType.TEAM, "description")
        assert not registry.is_critical(EntityType.TEAM, "unknown")

    def test_field_details(self, registry):
        """Descriptors are returned for published fields only."""
        details = registry.field_details(EntityType.TEAM_MEMBER, "weeklyCapacity")
        assert details.name == "Weekly Capacity"
        assert registry.field_details(EntityType.TEAM_MEMBER, "roster") is None

    def test_subscribers_for(self, registry):
        """Team roster changes reach members and work items."""
        subscribers = registry.subscribers_for(EntityType.TEAM, "roster")
        assert EntityType.TEAM_MEMBER in subscribers
        assert EntityType.FEATURE in subscribers
        assert EntityType.META not in subscribers

    def test_relevant_fields_keep_order(self, registry):
        """Relevant fields follow the order of the change."""
        relevant = registry.relevant_fields(
            EntityType.TEAM, EntityType.TEAM_MEMBER, ["roles", "position", "title"]
        )
        assert relevant == ("roles", "title")

    def test_describe_update(self, registry):
        """The description splits published, critical and unpublished fields."""
        description = registry.describe_update(EntityType.TEAM, "team-1", ["roster", "secret"])

        assert description["published"] == ["roster"]
        assert description["unpublished"] == ["secret"]
        assert description["critical"] == ["roster"]
        assert "teamMember" in description["subscribers"]["roster"]

    def test_mermaid(self, registry):
        """The diagram has one edge per subscription."""
        mermaid = registry.to_mermaid()
        assert mermaid.startswith("flowchart LR")
        assert "team -->|roster, bandwidth| teamMember" in mermaid


class TestUnpublishedFields:
    """Tests for fields left out of a manifest."""

    def test_unpublished_field_reaches_nobody(self):
        """Dropping a field from publishes removes every subscriber."""
        team = MANIFESTS[EntityType.TEAM]
        trimmed = EntityManifest(
            publishes=tuple(f for f in team.publishes if f.id != "roster"),
            subscribes=team.subscribes,
        )
        registry = ManifestRegistry(MappingProxyType({**MANIFESTS, EntityType.TEAM: trimmed}))

        assert registry.subscribers_for(EntityType.TEAM, "roster") == []

    def test_validate_reports_dead_subscription(self):
        """Subscribing to an undeclared field is reported."""
        team = MANIFESTS[EntityType.TEAM]
        trimmed = EntityManifest(
            publishes=tuple(f for f in team.publishes if f.id != "bandwidth"),
            subscribes=team.subscribes,
        )
        registry = ManifestRegistry({**MANIFESTS, EntityType.TEAM: trimmed})

        issues = registry.validate()

        assert issues
        assert all(issue.publisher_type == EntityType.TEAM for issue in issues)
        assert {issue.field_id for issue in issues} == {"bandwidth"}
