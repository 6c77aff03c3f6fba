# src/civic_guard/services/__init__.py
"""Business logic services for the moderation pipeline."""

from .anonymity import AnonymityGuard
from .audit import AuditLog
from .consensus import ConsensusService
from .pipeline import ModerationPipeline
from .scoring import ContentScorer
from .scoring_worker import ScoringWorker

__all__ = [
    "AnonymityGuard",
    "AuditLog",
    "ConsensusService",
    "ContentScorer",
    "ModerationPipeline",
    "ScoringWorker",
]
