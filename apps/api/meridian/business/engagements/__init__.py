from meridian.business.engagements.api import dependencies_router, router
from meridian.business.engagements.models import ChangeRequest, Dependency, Engagement, Feature, Milestone
from meridian.business.engagements.service import EngagementService, engagement_service

__all__ = [
    "router",
    "dependencies_router",
    "Engagement",
    "Feature",
    "Milestone",
    "ChangeRequest",
    "Dependency",
    "EngagementService",
    "engagement_service",
]
