"""Tests for the local workspace."""
import pytest
from pydantic import ValidationError

from capacity_sync.schemas import EntityType
from capacity_sync.workspace import Workspace, entity_type_of
from tests.factories import make_member, make_team, make_work_item


@pytest.fixture
def workspace():
    ws = Workspace()
    ws.put(make_member("m1"))
    ws.put(make_team("team-1", {"m1": 60}))
    ws.put(make_work_item("o1", entity_type=EntityType.OPTION))
    return ws


class TestWorkspace:
    """Tests for storage and patching."""

    def test_entity_type_of(self, workspace):
        assert entity_type_of(workspace.work_item("o1")) == EntityType.OPTION
        assert entity_type_of(workspace.member("m1")) == EntityType.TEAM_MEMBER

    def test_holds(self, workspace):
        """Meta nodes are not kept locally."""
        assert workspace.holds(EntityType.PROVIDER)
        assert workspace.holds(EntityType.MILESTONE)
        assert not workspace.holds(EntityType.META)
        assert not workspace.holds("spaceship")

    def test_apply_patch(self, workspace):
        """Patches merge camelCase fields into the model."""
        member = workspace.apply_patch(EntityType.TEAM_MEMBER, "m1", {"hoursPerDay": 6})

        assert member.hours_per_day == 6
        assert workspace.member("m1").hours_per_day == 6

    def test_invalid_patch_keeps_entity(self, workspace):
        """A patch failing validation leaves the entity untouched."""
        with pytest.raises(ValidationError):
            workspace.apply_patch(EntityType.TEAM_MEMBER, "m1", {"hoursPerDay": 30})
        assert workspace.member("m1").hours_per_day == 8

    def test_patch_unknown_entity(self, workspace):
        with pytest.raises(KeyError):
            workspace.apply_patch(EntityType.TEAM, "ghost", {"title": "x"})

    def test_team_of(self, workspace):
        """Members are found through the rosters."""
        assert workspace.team_of("m1").id == "team-1"
        assert workspace.roster_entry_for("m1").allocation_percent == 60
        assert workspace.team_of("ghost") is None

    def test_team_of_prefers_own_team(self, workspace):
        """The member's own team wins when both rosters list it."""
        workspace.put(make_team("team-2", {"m1": 40}))
        workspace.apply_patch(EntityType.TEAM_MEMBER, "m1", {"teamId": "team-2"})

        assert workspace.team_of("m1").id == "team-2"
