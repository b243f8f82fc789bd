from meridian.business.workstream.api import router
from meridian.business.workstream.models import Candidate, Proposal, Pursuit, PursuitChecklistItem
from meridian.business.workstream.service import WorkstreamService, workstream_service

__all__ = [
    "router",
    "Candidate",
    "Pursuit",
    "PursuitChecklistItem",
    "Proposal",
    "WorkstreamService",
    "workstream_service",
]
