"""Tests for the planning engine."""
import json
from datetime import date

import pytest
import pytest_asyncio

from capacity_sync import EntityType, PlanningEngine
from capacity_sync.config import Settings
from capacity_sync.store import InMemoryGraphStore
from tests.factories import make_member, make_milestone, make_team, make_work_item


@pytest.fixture
def engine(store, settings, notifier, clock):
    return PlanningEngine(store, settings=settings, notifier=notifier, clock=clock)


def stored_roster(store, team_id="team-1"):
    return json.loads(store.node(team_id)["roster"])


class TestLifecycle:
    """Tests for adding, loading and removing entities."""

    @pytest.mark.asyncio
    async def test_add_entity_fills_derived_fields(self, engine, store):
        """Added entities get their derived fields and are persisted."""
        member = engine.add_entity(make_member("m1"))
        team = engine.add_entity(make_team("team-1", {"m1": 100}))
        await engine.flush()

        assert member.effective_capacity == 40
        assert team.bandwidth == 40
        assert store.node("m1")["effectiveCapacity"] == 40
        assert store.node("team-1")["bandwidth"] == 40
        assert engine.bus.is_subscribed("m1")

    @pytest.mark.asyncio
    async def test_add_without_persist(self, engine, store):
        """Entities can be placed without a write."""
        engine.add_entity(make_member("m1"), persist=False)
        await engine.flush()

        assert store.writes == []

    @pytest.mark.asyncio
    async def test_load(self, settings, notifier, clock):
        """Stored entities are decoded, validated and subscribed."""
        store = InMemoryGraphStore({
            "m1": {"id": "m1", "type": "teamMember", "title": "Ann", "roles": '["dev"]'},
            "o1": {"id": "o1", "type": "option", "title": "Buy", "teamAllocations": "[]"},
        })
        engine = PlanningEngine(store, settings=settings, notifier=notifier, clock=clock)

        member = await engine.load(EntityType.TEAM_MEMBER, "m1")
        option = await engine.load(EntityType.OPTION, "o1")

        assert member.roles == ["dev"]
        assert engine.workspace.member("m1") is member
        assert option.type == EntityType.OPTION
        assert engine.bus.is_subscribed("o1")

    @pytest.mark.asyncio
    async def test_load_invalid(self, settings, notifier, clock):
        """Invalid stored data is reported and skipped."""
        store = InMemoryGraphStore({"m1": {"id": "m1", "type": "teamMember", "hoursPerDay": 99}})
        engine = PlanningEngine(store, settings=settings, notifier=notifier, clock=clock)

        assert await engine.load(EntityType.TEAM_MEMBER, "m1") is None
        assert engine.workspace.member("m1") is None
        assert len(notifier.of_level("error")) == 1

    @pytest.mark.asyncio
    async def test_load_missing(self, engine):
        assert await engine.load(EntityType.TEAM, "team-1") is None

    @pytest.mark.asyncio
    async def test_remove_drops_pending_writes(self, engine):
        """Removing an entity cancels its writes and subscription."""
        engine.add_entity(make_member("m1"))
        engine.remove_entity(EntityType.TEAM_MEMBER, "m1")

        assert engine.scheduler.pending_keys == []
        assert not engine.bus.is_subscribed("m1")
        assert engine.workspace.member("m1") is None

    @pytest.mark.asyncio
    async def test_delete_blacklists(self, engine, store):
        """Deleted entities are never written again."""
        engine.add_entity(make_member("m1"))
        await engine.flush()

        assert await engine.delete_entity(EntityType.TEAM_MEMBER, "m1") is True
        result = await engine.gateway.write(EntityType.TEAM_MEMBER, "m1", {"title": "X"}, ["title"])

        assert result.skipped
        assert store.node("m1") is None


class TestRosterPropagation:
    """Tests for roster-owned allocation and derived capacity."""

    @pytest_asyncio.fixture
    async def planned(self, engine):
        engine.add_entity(make_member("m1"))
        engine.add_entity(make_team("team-1", {"m1": 100}))
        return engine

    @pytest.mark.asyncio
    async def test_member_percent_edit_moves_to_roster(self, planned, store):
        """A member-side allocation edit lands on the roster and mirrors back."""
        planned.edit(EntityType.TEAM_MEMBER, "m1", {"teamAllocationPercent": 50})
        await planned.flush()

        assert stored_roster(store)[0]["allocationPercent"] == 50
        assert store.node("team-1")["bandwidth"] == 20
        assert store.node("m1")["teamAllocationPercent"] == 50
        assert store.node("m1")["effectiveCapacity"] == 20
        assert planned.workspace.member("m1").effective_capacity == 20

    @pytest.mark.asyncio
    async def test_roster_edit_reaches_member(self, planned, store):
        """Editing the roster updates the member's mirror."""
        await planned.flush()
        planned.edit(
            EntityType.TEAM,
            "team-1",
            {"roster": [{"memberId": "m1", "allocationPercent": 25}]},
        )
        await planned.flush()

        assert store.node("m1")["teamAllocationPercent"] == 25
        assert store.node("m1")["effectiveCapacity"] == 10
        assert store.node("team-1")["bandwidth"] == 10

    @pytest.mark.asyncio
    async def test_schedule_edit_updates_bandwidth(self, planned, store):
        """A member's schedule change reaches the team bandwidth."""
        await planned.flush()
        planned.edit(EntityType.TEAM_MEMBER, "m1", {"hoursPerDay": 6})
        await planned.flush()

        assert store.node("m1")["effectiveCapacity"] == 30
        assert store.node("team-1")["bandwidth"] == 30
        assert planned.workspace.team("team-1").bandwidth == 30

    @pytest.mark.asyncio
    async def test_propagation_settles(self, planned):
        """Nothing is left pending after a flush."""
        planned.edit(EntityType.TEAM_MEMBER, "m1", {"teamAllocationPercent": 75})
        await planned.flush()

        assert planned.scheduler.pending_keys == []

    @pytest.mark.asyncio
    async def test_failed_write_keeps_local_state(self, planned, store, notifier):
        """Optimistic edits survive a failed write."""
        await planned.flush()
        store.fail_next()
        planned.edit(EntityType.TEAM_MEMBER, "m1", {"title": "Renamed"})

        results = await planned.flush()

        assert not results[0].success
        assert planned.workspace.member("m1").title == "Renamed"
        assert len(notifier.of_level("error")) == 1


class TestAllocation:
    """Tests for member allocations on work items."""

    @pytest_asyncio.fixture
    async def planned(self, engine):
        engine.add_entity(make_member("m1"))
        engine.add_entity(make_team("team-1", {"m1": 100}))
        engine.add_entity(make_work_item("w1", date(2024, 1, 1), date(2024, 1, 5)))
        engine.add_entity(make_work_item("w2", date(2024, 1, 3), date(2024, 1, 7), {"m1": 25}))
        return engine

    @pytest.mark.asyncio
    async def test_over_allocation_is_reported(self, planned, notifier):
        """45h against 40h is accepted with a warning."""
        result = planned.set_member_allocation("w1", "team-1", "m1", 20)

        assert result.total_allocated_hours == 45
        assert result.over_allocated_by == 5
        assert not result.available
        assert planned.workspace.work_item("w1").member_hours("m1") == 20
        assert "over-allocated by 5h" in notifier.of_level("warning")[0].message

    @pytest.mark.asyncio
    async def test_zero_hours_removes_member(self, planned):
        """Setting zero hours removes the member from the allocation."""
        result = planned.set_member_allocation("w2", "team-1", "m1", 0)

        assert planned.workspace.work_item("w2").team_allocations[0].allocated_members == []
        assert result.available

    @pytest.mark.asyncio
    async def test_allocation_carries_member_name(self, planned):
        """New allocations are named after the member."""
        planned.set_member_allocation("w1", "team-1", "m1", 8)

        allocation = planned.workspace.work_item("w1").team_allocations[0]
        assert allocation.team_name == "Platform"
        assert allocation.allocated_members[0].name == "M1"

    @pytest.mark.asyncio
    async def test_allocate_team_splits_by_percent(self, engine):
        """Requested hours follow the roster percentages."""
        engine.add_entity(make_member("m1"))
        engine.add_entity(make_member("m2"))
        engine.add_entity(make_team("team-1", {"m1": 50, "m2": 25}))
        engine.add_entity(make_work_item("w1"))

        work_item = engine.allocate_team("w1", "team-1", 40)

        allocation = work_item.team_allocations[0]
        assert allocation.requested_hours == 40
        assert [(m.member_id, m.hours) for m in allocation.allocated_members] == [("m1", 20), ("m2", 10)]

    @pytest.mark.asyncio
    async def test_unknown_work_item(self, engine):
        with pytest.raises(KeyError):
            engine.set_member_allocation("ghost", "team-1", "m1", 8)

    @pytest.mark.asyncio
    async def test_roster_records_work_item_hours(self, planned, store):
        """The team roster tracks hours per work item after a flush."""
        await planned.flush()

        roster = stored_roster(store)
        assert roster[0]["perWorkItemAllocations"] == [{"workItemId": "w2", "hours": 25}]

    @pytest.mark.asyncio
    async def test_member_rename_reaches_work_item(self, planned, store):
        """Work items pick up a member's new name."""
        await planned.flush()
        planned.edit(EntityType.TEAM_MEMBER, "m1", {"title": "Ann"})
        await planned.flush()

        member = planned.workspace.work_item("w2").team_allocations[0].allocated_members[0]
        assert member.name == "Ann"
        stored = json.loads(store.node("w2")["teamAllocations"])
        assert stored[0]["allocatedMembers"][0]["name"] == "Ann"

    @pytest.mark.asyncio
    async def test_team_rename_reaches_work_item(self, planned):
        """Work items pick up a team's new name."""
        await planned.flush()
        planned.edit(EntityType.TEAM, "team-1", {"title": "Core"})
        await planned.flush()

        assert planned.workspace.work_item("w2").team_allocations[0].team_name == "Core"


class TestQueries:
    """Tests for read-only queries."""

    @pytest.mark.asyncio
    async def test_cost_summary(self, engine):
        """Hours are charged at the member rate."""
        engine.add_entity(make_member("m1", daily_rate=50))
        engine.add_entity(make_work_item("w1", allocations={"m1": 16}))

        summary = engine.cost_summary("w1")

        assert summary.total_cost == 800
        assert summary.total_days == 2
        assert summary.lines[0].name == "M1"

    @pytest.mark.asyncio
    async def test_conflicts(self, engine):
        """Over-allocated members show up as conflicts."""
        engine.add_entity(make_member("m1"))
        engine.add_entity(make_work_item("w1", allocations={"m1": 30}))
        engine.add_entity(make_work_item("w2", allocations={"m1": 30}))

        assert [report.member_id for report in engine.conflicts()] == ["m1"]

    @pytest.mark.asyncio
    async def test_edit_untracked_type_is_written(self, engine, store):
        """Meta node edits go straight to the store."""
        assert engine.edit(EntityType.META, "meta-1", {"title": "Notes"}) is None
        await engine.flush()

        assert store.node("meta-1")["title"] == "Notes"

    @pytest.mark.asyncio
    async def test_close_flushes(self, engine, store):
        """Closing commits pending writes."""
        engine.add_entity(make_member("m1"))
        await engine.close()

        assert store.node("m1")["title"] == "M1"
        assert engine.scheduler.pending_keys == []


class TestTeardownAtDefaultTimings:
    """Closing with the shipped debounce, window and release delays."""

    @pytest_asyncio.fixture
    async def planned(self, store, notifier):
        engine = PlanningEngine(store, settings=Settings(_env_file=None), notifier=notifier)
        engine.add_entity(make_member("m1"))
        engine.add_entity(make_team("team-1", {"m1": 100}))
        return engine

    @pytest.mark.asyncio
    async def test_schedule_edit_reaches_bandwidth(self, planned, store):
        """Member capacity and team bandwidth agree after close."""
        await planned.flush()
        planned.edit(EntityType.TEAM_MEMBER, "m1", {"hoursPerDay": 6})
        await planned.close()

        assert store.node("m1")["effectiveCapacity"] == 30
        assert store.node("team-1")["bandwidth"] == 30

    @pytest.mark.asyncio
    async def test_work_item_hours_reach_roster(self, planned, store):
        """Per-work-item hours are on the stored roster after close."""
        planned.add_entity(make_work_item("w2", date(2024, 1, 3), date(2024, 1, 7), {"m1": 25}))
        await planned.close()

        assert stored_roster(store)[0]["perWorkItemAllocations"] == [{"workItemId": "w2", "hours": 25}]

    @pytest.mark.asyncio
    async def test_member_rename_reaches_work_item(self, planned, store):
        """A rename right before close still renames the allocation."""
        planned.add_entity(make_work_item("w2", allocations={"m1": 25}))
        await planned.flush()
        planned.edit(EntityType.TEAM_MEMBER, "m1", {"title": "Ann"})
        await planned.close()

        stored = json.loads(store.node("w2")["teamAllocations"])
        assert stored[0]["allocatedMembers"][0]["name"] == "Ann"

    @pytest.mark.asyncio
    async def test_roster_edit_twice_in_one_session(self, planned, store):
        """Back-to-back flushes each propagate their edit."""
        await planned.flush()
        planned.edit(EntityType.TEAM_MEMBER, "m1", {"teamAllocationPercent": 50})
        await planned.flush()
        planned.edit(EntityType.TEAM_MEMBER, "m1", {"teamAllocationPercent": 25})
        await planned.close()

        assert stored_roster(store)[0]["allocationPercent"] == 25
        assert store.node("m1")["effectiveCapacity"] == 10
        assert store.node("team-1")["bandwidth"] == 10


class TestMilestoneRollup:
    """Tests for milestone totals kept in step with connected work items."""

    @pytest_asyncio.fixture
    async def planned(self, engine):
        engine.add_entity(make_member("m1", daily_rate=50))
        engine.add_entity(make_work_item("f1", allocations={"m1": 16}))
        engine.add_entity(
            make_work_item("o1", entity_type=EntityType.OPTION, monthly_volume=10_000, transaction_fee_rate=2.5)
        )
        engine.add_entity(make_milestone("ms-1"))
        return engine

    @pytest.mark.asyncio
    async def test_connect_rolls_up(self, planned, store):
        """Connecting work items updates and persists the totals."""
        edge = await planned.connect(EntityType.MILESTONE, "f1", "ms-1", "PART_OF")
        await planned.connect(EntityType.MILESTONE, "o1", "ms-1", "PART_OF")
        await planned.flush()

        milestone = planned.workspace.milestone("ms-1")
        assert edge.id in [e.id for e in store.edges]
        assert milestone.total_cost == 800
        assert milestone.monthly_value == 250
        assert store.node("ms-1")["totalCost"] == 800
        assert store.node("ms-1")["monthlyValue"] == 250

    @pytest.mark.asyncio
    async def test_work_item_edit_reaches_milestone(self, planned, store):
        """An option's new volume reaches the milestone through the bus."""
        await planned.connect(EntityType.MILESTONE, "o1", "ms-1")
        await planned.flush()

        planned.edit(EntityType.OPTION, "o1", {"monthlyVolume": 20_000})
        assert planned.workspace.milestone("ms-1").monthly_value == 250
        await planned.flush()

        assert planned.workspace.milestone("ms-1").monthly_value == 500
        assert store.node("ms-1")["monthlyValue"] == 500

    @pytest.mark.asyncio
    async def test_unconnected_work_item_ignored(self, planned):
        """Edits to work items outside the milestone leave it alone."""
        await planned.connect(EntityType.MILESTONE, "f1", "ms-1")
        planned.add_entity(make_work_item("f2", allocations={"m1": 40}))
        await planned.flush()

        assert planned.workspace.milestone("ms-1").total_cost == 800

    @pytest.mark.asyncio
    async def test_disconnect(self, planned, store):
        """Deleting the edge drops the work item from the totals."""
        edge = await planned.connect(EntityType.MILESTONE, "f1", "ms-1")

        assert await planned.disconnect(EntityType.MILESTONE, edge.id) is True
        await planned.flush()

        assert planned.workspace.edges == []
        assert store.edges == []
        assert store.node("ms-1")["totalCost"] == 0

    @pytest.mark.asyncio
    async def test_remove_work_item(self, planned):
        """Removing a connected work item drops it and its edges."""
        await planned.connect(EntityType.MILESTONE, "f1", "ms-1")
        planned.remove_entity(EntityType.FEATURE, "f1")

        assert planned.workspace.edges == []
        assert planned.workspace.milestone("ms-1").total_cost == 0

    @pytest.mark.asyncio
    async def test_failed_connect(self, planned, store, notifier):
        """A refused edge is not tracked locally."""
        store.fail_next()

        assert await planned.connect(EntityType.MILESTONE, "f1", "ms-1") is None
        assert planned.workspace.edges == []
        assert len(notifier.of_level("error")) == 1

    @pytest.mark.asyncio
    async def test_metrics(self, planned):
        await planned.connect(EntityType.MILESTONE, "f1", "ms-1")

        metrics = planned.milestone_metrics("ms-1")

        assert metrics.team_costs == 800
        assert metrics.work_item_costs["f1"].lines[0].name == "M1"
        with pytest.raises(KeyError):
            planned.milestone_metrics("ghost")
