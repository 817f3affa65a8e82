from enum import StrEnum

from pydantic import BaseModel


class EmailType(StrEnum):
    general = "general"
    sales = "sales"
    support = "support"
    booking = "booking"
    press = "press"
    billing = "billing"
    other = "other"


class Priority(StrEnum):
    primary = "primary"
    secondary = "secondary"


class EmailFact(BaseModel):
    value: str  # normalized, lowercase
    type: EmailType = EmailType.general
    priority: Priority = Priority.secondary
    signals: list[str] = []  # mailto | text | schema | same_domain
    sourceUrl: str
    snippet: str | None = None


class PhoneFact(BaseModel):
    valueRaw: str
    valueE164: str | None = None
    priority: Priority = Priority.secondary
    signals: list[str] = []  # tel | text | footer_or_contact
    sourceUrl: str
    snippet: str | None = None
