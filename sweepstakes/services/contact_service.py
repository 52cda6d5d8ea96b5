import re
from typing import NamedTuple

from sweepstakes.models.enums import ContactKind, EntryType
from sweepstakes.services.errors import InvalidContact

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NON_DIGIT_RE = re.compile(r"\D")

# E.164 allows at most 15 digits including the country code.
MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 15
DEFAULT_COUNTRY_CODE = "1"


class ResolvedContacts(NamedTuple):
    phone: str | None
    email: str | None


def normalize_phone(raw: str) -> str:
    """Return the digits of an E.164 number without the leading '+'.

    Ten-digit input is a US national number and gets the `1` country code.
    """
    digits = NON_DIGIT_RE.sub("", raw or "")
    if len(digits) < MIN_PHONE_DIGITS or len(digits) > MAX_PHONE_DIGITS:
        raise InvalidContact("Invalid phone number")
    if len(digits) == MIN_PHONE_DIGITS:
        digits = DEFAULT_COUNTRY_CODE + digits
    return digits


def normalize_email(raw: str) -> str:
    email = (raw or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise InvalidContact("Invalid email format")
    return email


def resolve_contact(kind: ContactKind, raw: str) -> str:
    if kind == ContactKind.phone:
        return normalize_phone(raw)
    return normalize_email(raw)


def resolve_contacts(
    entry_type: EntryType, *, phone: str | None, email: str | None
) -> ResolvedContacts:
    """Normalize the identity contacts the entry-type policy asks for.

    A contact the policy does not use as identity is dropped; it would
    otherwise take part in the per-giveaway uniqueness checks.
    """
    requires_phone = entry_type in (EntryType.phone, EntryType.both)
    requires_email = entry_type in (EntryType.email, EntryType.both)

    normalized_phone = None
    normalized_email = None
    if requires_phone:
        if not (phone and phone.strip()):
            raise InvalidContact("Phone number is required")
        normalized_phone = normalize_phone(phone)
    if requires_email:
        if not (email and email.strip()):
            raise InvalidContact("Email is required")
        normalized_email = normalize_email(email)
    return ResolvedContacts(phone=normalized_phone, email=normalized_email)


def secondary_contact_kind(entry_type: EntryType) -> ContactKind | None:
    """Kind of contact that earns the bonus, or None when both are already required."""
    if entry_type == EntryType.phone:
        return ContactKind.email
    if entry_type == EntryType.email:
        return ContactKind.phone
    return None


def lookup_contact(
    entry_type: EntryType, *, phone: str | None, email: str | None
) -> tuple[ContactKind, str]:
    """Pick the identity contact to search by under the giveaway's entry-type policy.

    Contacts the policy does not store are ignored. Under `both`, phone wins.
    """
    has_phone = bool(phone and phone.strip())
    has_email = bool(email and email.strip())
    if entry_type == EntryType.email or (entry_type == EntryType.both and not has_phone):
        if not has_email:
            raise InvalidContact("Email is required")
        return ContactKind.email, normalize_email(email)
    if not has_phone:
        raise InvalidContact("Phone number is required")
    return ContactKind.phone, normalize_phone(phone)
