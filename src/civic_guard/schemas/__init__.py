# src/civic_guard/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .anonymous import (
    AnonymousReceipt,
    AnonymousReportCreate,
    AnonymousResponseCreate,
    AnonymousStatsResponse,
    AnonymousStatusResponse,
)
from .audit import AuditEntryResponse
from .item import (
    ChannelCreate,
    ChannelResponse,
    ChatMessageCreate,
    ItemResponse,
    ReportCreate,
    TallyResponse,
)
from .moderation import AuthorityDecisionCreate, TransitionResponse
from .vote import BallotResponse, ReportFlagCreate, VoteCreate

__all__ = [
    "AnonymousReceipt", "AnonymousReportCreate", "AnonymousResponseCreate",
    "AnonymousStatsResponse", "AnonymousStatusResponse",
    "AuditEntryResponse",
    "ChannelCreate", "ChannelResponse",
    "ChatMessageCreate", "ItemResponse", "ReportCreate", "TallyResponse",
    "AuthorityDecisionCreate", "TransitionResponse",
    "BallotResponse", "ReportFlagCreate", "VoteCreate",
]
