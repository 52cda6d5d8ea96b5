from sweepstakes.models.audit_log import AuditLog
from sweepstakes.models.entry import Entry
from sweepstakes.models.enums import (
    AlternateSelection,
    ContactKind,
    EntryType,
    GiveawayStatus,
    SelectionMethod,
    WinnerAction,
    WinnerStatus,
    WinnerType,
)
from sweepstakes.models.giveaway import Giveaway
from sweepstakes.models.referral import ReferralEdge
from sweepstakes.models.winner import Winner

__all__ = [
    "AlternateSelection",
    "AuditLog",
    "ContactKind",
    "Entry",
    "EntryType",
    "Giveaway",
    "GiveawayStatus",
    "ReferralEdge",
    "SelectionMethod",
    "Winner",
    "WinnerAction",
    "WinnerStatus",
    "WinnerType",
]
