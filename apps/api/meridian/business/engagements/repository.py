from __future__ import annotations

from meridian.business.engagements.models import ChangeRequest, Dependency, Engagement, Feature, Milestone
from meridian.platform.security.repository import BaseRepository


class EngagementRepository(BaseRepository[Engagement]):
    resource = "engagements.engagement"
    model = Engagement


class FeatureRepository(BaseRepository[Feature]):
    resource = "engagements.feature"
    model = Feature


class MilestoneRepository(BaseRepository[Milestone]):
    resource = "engagements.milestone"
    model = Milestone


class ChangeRequestRepository(BaseRepository[ChangeRequest]):
    resource = "engagements.change_request"
    model = ChangeRequest


class DependencyRepository(BaseRepository[Dependency]):
    resource = "engagements.dependency"
    model = Dependency
