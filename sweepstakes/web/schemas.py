from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from sweepstakes.models.enums import (
    ContactKind,
    SelectionMethod,
    WinnerAction,
    WinnerStatus,
    WinnerType,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class EnterGiveawayRequest(CamelModel):
    giveaway_id: int
    phone: str | None = Field(default=None, max_length=32)
    email: str | None = Field(default=None, max_length=320)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=32)
    zip_code: str | None = Field(default=None, max_length=10)
    agreed_to_rules: bool = False
    sms_opt_in: bool = False
    entry_source: str = Field(default="website", max_length=32)
    secondary_contact: str | None = Field(default=None, max_length=320)
    referral_code: str | None = Field(default=None, max_length=16)


class EnterGiveawayResponse(CamelModel):
    success: bool = True
    entry_id: int
    referral_code: str
    entry_count: int
    bonus_claimed: bool
    can_claim_bonus: bool


class LookupRequest(CamelModel):
    giveaway_id: int
    phone: str | None = Field(default=None, max_length=32)
    email: str | None = Field(default=None, max_length=320)


class EntryView(CamelModel):
    id: int
    first_name: str
    entry_count: int
    base_entries: int
    bonus_entries: int
    referral_entries: int
    bonus_claimed: bool
    has_secondary_contact: bool
    referral_code: str
    created_at: datetime


class LookupNotFound(CamelModel):
    success: bool = True
    found: Literal[False] = False


class LookupFound(CamelModel):
    success: bool = True
    found: Literal[True] = True
    entry: EntryView
    can_claim_bonus: bool
    referral_enabled: bool
    referral_count: int
    referral_entries_remaining: int


class ClaimBonusRequest(CamelModel):
    entry_id: int
    giveaway_id: int
    secondary_contact: str = Field(min_length=1, max_length=320)
    secondary_contact_type: ContactKind


class ClaimBonusResponse(CamelModel):
    success: bool = True
    entry_count: int
    bonus_claimed: bool


class WinnerView(CamelModel):
    id: int
    entry_id: int
    winner_type: WinnerType
    rank: int
    status: WinnerStatus
    selection_method: SelectionMethod
    first_name: str
    last_name: str
    state: str
    claim_deadline: datetime | None


class SelectWinnersResponse(CamelModel):
    success: bool = True
    primary_winners: list[WinnerView]
    alternate_winners: list[WinnerView]


class WinnerListResponse(CamelModel):
    success: bool = True
    winners: list[WinnerView]


class WinnerActionRequest(CamelModel):
    winner_id: int
    action: WinnerAction


class WinnerActionResponse(CamelModel):
    success: bool = True
    winner: WinnerView


class ManualAlternateRequest(CamelModel):
    entry_id: int


class GiveawayStatusResponse(CamelModel):
    success: bool = True
    giveaway_id: int
    status: str


class EntryValidityRequest(CamelModel):
    entry_id: int
    is_valid: bool
    invalidation_reason: str | None = Field(default=None, max_length=500)


class EntryValidityResponse(CamelModel):
    success: bool = True
    id: int
    is_valid: bool
    invalidation_reason: str | None
