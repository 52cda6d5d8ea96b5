from enum import Enum


class GiveawayStatus(str, Enum):
    draft = "draft"
    active = "active"
    closed = "closed"
    ended = "ended"


class EntryType(str, Enum):
    phone = "phone"
    email = "email"
    both = "both"


class ContactKind(str, Enum):
    phone = "phone"
    email = "email"


class AlternateSelection(str, Enum):
    auto = "auto"
    manual = "manual"


class WinnerType(str, Enum):
    primary = "primary"
    alternate = "alternate"


class SelectionMethod(str, Enum):
    weighted_random = "weighted_random"
    manual = "manual"


class WinnerStatus(str, Enum):
    pending = "pending"
    notified = "notified"
    forfeited = "forfeited"
    disqualified = "disqualified"


class WinnerAction(str, Enum):
    notify = "notify"
    forfeit = "forfeit"
    disqualify = "disqualify"
    promote = "promote"
