"""Manifests of every entity type.

A manifest lists the fields an entity type publishes and, per publisher
type, the field ids it subscribes to. A field left out of ``publishes`` is
never broadcast.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from capacity_sync.manifest.fields import (
    COMMON_FIELDS,
    FieldDescriptor,
    create_array_item_field,
    create_field,
    create_nested_field,
)
from capacity_sync.schemas.entities import EntityType


@dataclass(frozen=True)
class EntityManifest:
    """Publish/subscribe declaration of one entity type."""

    publishes: tuple[FieldDescriptor, ...]
    subscribes: Mapping[EntityType, tuple[str, ...]] = field(default_factory=dict)

    def published_field(self, field_id: str) -> FieldDescriptor | None:
        for descriptor in self.publishes:
            if descriptor.id == field_id:
                return descriptor
        return None


# =============================================================================
# Team Member
# =============================================================================


class TeamMemberFields:
    ROLES = create_field("roles", "Roles", "The roles this member can fulfill", critical=True)
    BIO = create_field("bio", "Bio", "Biographical information about the member")
    TIMEZONE = create_field("timezone", "Timezone", "The timezone the member is in")
    DAILY_RATE = create_field("dailyRate", "Daily Rate", "The rate charged by this member", critical=True)
    HOURS_PER_DAY = create_field("hoursPerDay", "Hours Per Day", "Hours per day the member can work", critical=True)
    DAYS_PER_WEEK = create_field("daysPerWeek", "Days Per Week", "Days per week the member can work", critical=True)
    WEEKLY_CAPACITY = create_field(
        "weeklyCapacity", "Weekly Capacity", "Hours per week the member can work", critical=True
    )
    TEAM_ALLOCATION_PERCENT = create_field(
        "teamAllocationPercent",
        "Team Allocation",
        "Percentage of the member's time allocated to their team",
        critical=True,
    )
    EFFECTIVE_CAPACITY = create_field(
        "effectiveCapacity",
        "Effective Capacity",
        "Weekly hours left for the team after the team allocation",
        critical=True,
    )
    START_DATE = create_field("startDate", "Start Date", "The date the member is available from")
    SKILLS = create_field("skills", "Skills", "The skills this member has")
    TEAM_ID = create_field("teamId", "Team ID", "The team this member is assigned to")


TEAM_MEMBER_MANIFEST = EntityManifest(
    publishes=(
        *COMMON_FIELDS,
        TeamMemberFields.ROLES,
        TeamMemberFields.BIO,
        TeamMemberFields.TIMEZONE,
        TeamMemberFields.DAILY_RATE,
        TeamMemberFields.HOURS_PER_DAY,
        TeamMemberFields.DAYS_PER_WEEK,
        TeamMemberFields.WEEKLY_CAPACITY,
        TeamMemberFields.TEAM_ALLOCATION_PERCENT,
        TeamMemberFields.EFFECTIVE_CAPACITY,
        TeamMemberFields.START_DATE,
        TeamMemberFields.SKILLS,
        TeamMemberFields.TEAM_ID,
    ),
    subscribes=MappingProxyType({
        EntityType.TEAM: ("roster", "bandwidth"),
        EntityType.FEATURE: ("teamAllocations",),
        EntityType.OPTION: ("teamAllocations",),
        EntityType.PROVIDER: ("teamAllocations",),
    }),
)


# =============================================================================
# Team
# =============================================================================


class TeamFields:
    ROSTER = create_field("roster", "Roster", "The members assigned to this team", critical=True)
    BANDWIDTH = create_field("bandwidth", "Bandwidth", "Total effective weekly hours of the team", critical=True)
    SEASON = create_field("season", "Season", "The season timeframe of this team")
    SEASON_START_DATE = create_nested_field("season", "startDate", "Season Start Date")
    SEASON_END_DATE = create_nested_field("season", "endDate", "Season End Date")
    SEASON_NAME = create_nested_field("season", "name", "Season Name")
    ROSTER_MEMBER_ID = create_array_item_field("roster", "memberId", "Roster Member ID")
    ROSTER_ALLOCATION = create_array_item_field(
        "roster", "allocationPercent", "Roster Member Allocation", critical=True
    )
    ROSTER_ROLE = create_array_item_field("roster", "role", "Roster Member Role")
    ROSTER_START_DATE = create_array_item_field("roster", "startDate", "Roster Member Start Date")


TEAM_MANIFEST = EntityManifest(
    publishes=(
        *COMMON_FIELDS,
        TeamFields.ROSTER,
        TeamFields.BANDWIDTH,
        TeamFields.SEASON,
        TeamFields.SEASON_START_DATE,
        TeamFields.SEASON_END_DATE,
        TeamFields.SEASON_NAME,
        TeamFields.ROSTER_MEMBER_ID,
        TeamFields.ROSTER_ALLOCATION,
        TeamFields.ROSTER_ROLE,
        TeamFields.ROSTER_START_DATE,
    ),
    subscribes=MappingProxyType({
        EntityType.TEAM_MEMBER: (
            "title",
            "hoursPerDay",
            "daysPerWeek",
            "weeklyCapacity",
            "teamAllocationPercent",
            "effectiveCapacity",
            "roles",
            "dailyRate",
        ),
        EntityType.FEATURE: ("teamAllocations", "buildType", "duration"),
        EntityType.OPTION: ("teamAllocations",),
        EntityType.PROVIDER: ("teamAllocations",),
    }),
)


# =============================================================================
# Work items
# =============================================================================


class WorkItemFields:
    """Fields shared by features, options and providers."""

    DURATION = create_field("duration", "Duration", "How long the work item takes", critical=True)
    START_DATE = create_field("startDate", "Start Date", "When the work item is scheduled to start")
    END_DATE = create_field("endDate", "End Date", "When the work item is scheduled to end")
    TEAM_ALLOCATIONS = create_field(
        "teamAllocations", "Team Allocations", "The teams and members allocated", critical=True
    )
    TEAM_ALLOCATION_TEAM_ID = create_array_item_field("teamAllocations", "teamId", "Team ID")
    TEAM_ALLOCATION_REQUESTED_HOURS = create_array_item_field(
        "teamAllocations", "requestedHours", "Requested Hours", critical=True
    )
    TEAM_ALLOCATION_MEMBERS = create_array_item_field(
        "teamAllocations", "allocatedMembers", "Allocated Members", critical=True
    )
    TEAM_MEMBERS = create_field("teamMembers", "Team Members", "The members assigned to the work item")
    MEMBER_ALLOCATIONS = create_field("memberAllocations", "Member Allocations", "Per-member allocation")

    ALL = (
        DURATION,
        START_DATE,
        END_DATE,
        TEAM_ALLOCATIONS,
        TEAM_ALLOCATION_TEAM_ID,
        TEAM_ALLOCATION_REQUESTED_HOURS,
        TEAM_ALLOCATION_MEMBERS,
        TEAM_MEMBERS,
        MEMBER_ALLOCATIONS,
    )


class FeatureFields:
    BUILD_TYPE = create_field("buildType", "Build Type", "Built internally or externally", critical=True)
    COST = create_field("cost", "Cost", "The calculated cost of the feature")
    TIME_UNIT = create_field("timeUnit", "Time Unit", "Unit used for the duration")
    AVAILABLE_BANDWIDTH = create_field("availableBandwidth", "Available Bandwidth", "Bandwidth left")


class OptionFields:
    OPTION_TYPE = create_field("optionType", "Option Type", "The kind of option", critical=True)
    TRANSACTION_FEE_RATE = create_field("transactionFeeRate", "Transaction Fee Rate")
    MONTHLY_VOLUME = create_field("monthlyVolume", "Monthly Volume")
    GOALS = create_field("goals", "Goals", "Goals of the option")
    RISKS = create_field("risks", "Risks", "Risks of the option")
    BUILD_DURATION = create_field("buildDuration", "Build Duration", critical=True)
    TIME_TO_CLOSE = create_field("timeToClose", "Time To Close")


class ProviderFields:
    COSTS = create_field("costs", "Costs", "Cost items of the provider", critical=True)
    DD_ITEMS = create_field("ddItems", "Due Diligence Items")


_RESOURCE_SUBSCRIPTIONS = {
    EntityType.TEAM: ("title", "roster", "bandwidth"),
    EntityType.TEAM_MEMBER: ("title", "weeklyCapacity", "effectiveCapacity", "dailyRate"),
}

FEATURE_MANIFEST = EntityManifest(
    publishes=(
        *COMMON_FIELDS,
        *WorkItemFields.ALL,
        FeatureFields.BUILD_TYPE,
        FeatureFields.COST,
        FeatureFields.TIME_UNIT,
        FeatureFields.AVAILABLE_BANDWIDTH,
    ),
    subscribes=MappingProxyType(dict(_RESOURCE_SUBSCRIPTIONS)),
)

OPTION_MANIFEST = EntityManifest(
    publishes=(
        *COMMON_FIELDS,
        *WorkItemFields.ALL,
        OptionFields.OPTION_TYPE,
        OptionFields.TRANSACTION_FEE_RATE,
        OptionFields.MONTHLY_VOLUME,
        OptionFields.GOALS,
        OptionFields.RISKS,
        OptionFields.BUILD_DURATION,
        OptionFields.TIME_TO_CLOSE,
    ),
    subscribes=MappingProxyType({
        **_RESOURCE_SUBSCRIPTIONS,
        EntityType.FEATURE: ("title", "buildType", "duration"),
        EntityType.PROVIDER: ("title", "costs", "duration"),
    }),
)

PROVIDER_MANIFEST = EntityManifest(
    publishes=(
        *COMMON_FIELDS,
        *WorkItemFields.ALL,
        ProviderFields.COSTS,
        ProviderFields.DD_ITEMS,
    ),
    subscribes=MappingProxyType({
        **_RESOURCE_SUBSCRIPTIONS,
        EntityType.FEATURE: ("title", "buildType", "duration"),
    }),
)


# =============================================================================
# Milestone and meta
# =============================================================================


class MilestoneFields:
    KPIS = create_field("kpis", "KPIs", "Key performance indicators of the milestone", critical=True)
    TOTAL_COST = create_field("totalCost", "Total Cost", "Rolled-up cost of connected work")
    MONTHLY_VALUE = create_field("monthlyValue", "Monthly Value", "Rolled-up monthly value")


class MetaFields:
    KNOWLEDGE_TYPE = create_field("knowledgeType", "Knowledge Type", critical=True)
    ROADMAP_PHASE = create_field("roadmapPhase", "Roadmap Phase")
    TAGS = create_field("tags", "Tags")
    PRIORITY = create_field("priority", "Priority", critical=True)
    RELATED_LINKS = create_field("relatedLinks", "Related Links")


MILESTONE_MANIFEST = EntityManifest(
    publishes=(
        *COMMON_FIELDS,
        MilestoneFields.KPIS,
        MilestoneFields.TOTAL_COST,
        MilestoneFields.MONTHLY_VALUE,
    ),
    subscribes=MappingProxyType({
        EntityType.FEATURE: ("title", "status", "teamAllocations", "cost"),
        EntityType.OPTION: ("title", "status", "monthlyVolume", "transactionFeeRate"),
        EntityType.PROVIDER: ("title", "status", "costs"),
    }),
)

META_MANIFEST = EntityManifest(
    publishes=(
        *COMMON_FIELDS,
        MetaFields.KNOWLEDGE_TYPE,
        MetaFields.ROADMAP_PHASE,
        MetaFields.TAGS,
        MetaFields.PRIORITY,
        MetaFields.RELATED_LINKS,
    ),
    subscribes=MappingProxyType({
        EntityType.MILESTONE: ("title", "description", "status", "kpis"),
        EntityType.FEATURE: ("title", "description", "buildType"),
        EntityType.OPTION: ("title", "description", "optionType"),
        EntityType.PROVIDER: ("title", "description"),
        EntityType.TEAM: ("title", "description"),
        EntityType.TEAM_MEMBER: ("title", "description"),
    }),
)


MANIFESTS: Mapping[EntityType, EntityManifest] = MappingProxyType({
    EntityType.TEAM_MEMBER: TEAM_MEMBER_MANIFEST,
    EntityType.TEAM: TEAM_MANIFEST,
    EntityType.FEATURE: FEATURE_MANIFEST,
    EntityType.OPTION: OPTION_MANIFEST,
    EntityType.PROVIDER: PROVIDER_MANIFEST,
    EntityType.MILESTONE: MILESTONE_MANIFEST,
    EntityType.META: META_MANIFEST,
})
