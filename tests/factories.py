"""Entity factories and a controllable clock shared by the tests."""
from datetime import date

from capacity_sync.schemas import (
    EntityType,
    MemberAllocation,
    Milestone,
    RosterEntry,
    Team,
    TeamAllocation,
    TeamMember,
    WorkItem,
)


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


def make_member(member_id: str = "member-1", **kwargs) -> TeamMember:
    """Team member working 8h x 5d unless overridden."""
    defaults = {"title": member_id.title(), "hours_per_day": 8, "days_per_week": 5}
    return TeamMember(id=member_id, **{**defaults, **kwargs})


def make_team(team_id: str = "team-1", members: dict[str, float] | None = None, **kwargs) -> Team:
    """Team whose roster maps member id -> allocation percent."""
    roster = [
        RosterEntry(member_id=member_id, allocation_percent=percent)
        for member_id, percent in (members or {}).items()
    ]
    return Team(id=team_id, title=kwargs.pop("title", "Platform"), roster=roster, **kwargs)


def make_work_item(
    work_item_id: str = "feature-1",
    start: date | None = date(2024, 1, 1),
    end: date | None = date(2024, 1, 5),
    allocations: dict[str, float] | None = None,
    team_id: str = "team-1",
    entity_type: EntityType = EntityType.FEATURE,
    **kwargs,
) -> WorkItem:
    """Work item with one team allocation mapping member id -> hours."""
    team_allocations = []
    if allocations:
        team_allocations.append(
            TeamAllocation(
                team_id=team_id,
                requested_hours=sum(allocations.values()),
                allocated_members=[
                    MemberAllocation(member_id=member_id, hours=hours)
                    for member_id, hours in allocations.items()
                ],
            )
        )
    return WorkItem(
        id=work_item_id,
        type=entity_type,
        title=work_item_id.title(),
        start_date=start,
        end_date=end,
        team_allocations=team_allocations,
        **kwargs,
    )


def make_milestone(milestone_id: str = "milestone-1", **kwargs) -> Milestone:
    return Milestone(id=milestone_id, title=kwargs.pop("title", "Launch"), **kwargs)
