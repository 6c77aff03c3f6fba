# src/civic_guard/models/__init__.py
"""SQLAlchemy models for the Civic Guard service."""

from .account import Account
from .audit import AuditLogEntry
from .channel import ChatChannel
from .consensus import ConsensusBallot, ConsensusTally
from .escalation import EscalationOutbound
from .item import AnonymousReport, ChatMessage, ModerationItem, Report

__all__ = [
    "Account",
    "AuditLogEntry",
    "ChatChannel",
    "ConsensusBallot", "ConsensusTally",
    "EscalationOutbound",
    "AnonymousReport", "ChatMessage", "ModerationItem", "Report",
]
