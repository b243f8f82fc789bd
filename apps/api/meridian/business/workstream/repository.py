from __future__ import annotations

from meridian.business.workstream.models import Candidate, Proposal, Pursuit, PursuitChecklistItem
from meridian.platform.security.repository import BaseRepository


class CandidateRepository(BaseRepository[Candidate]):
    resource = "workstream.candidate"
    model = Candidate


class PursuitRepository(BaseRepository[Pursuit]):
    resource = "workstream.pursuit"
    model = Pursuit


class ChecklistItemRepository(BaseRepository[PursuitChecklistItem]):
    resource = "workstream.pursuit_checklist"
    model = PursuitChecklistItem


class ProposalRepository(BaseRepository[Proposal]):
    resource = "workstream.proposal"
    model = Proposal
