"""CRM lead analysis: staleness buckets and the call sessions they call for."""

from dataclasses import dataclass, field
from datetime import datetime

from cadence.core.priority import PriorityTier
from cadence.core.tasks import CALL_SESSION, format_ticktick_datetime

# Airtable field names in the CRM base
FIELD_FIRST_NAME = "Prénom"
FIELD_LAST_NAME = "Nom"
FIELD_PHONE = "Téléphone"
FIELD_STATUS = "Statut"
FIELD_LAST_MODIFIED = "Dernière modification"

AUTO_SCHEDULED_TAGS = ("cap-numerique", "auto-scheduled")


@dataclass
class Lead:
    """A CRM prospect."""

    id: str
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    status: str = ""
    last_contact: datetime | None = None

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def days_since_contact(self, now: datetime) -> int | None:
        if self.last_contact is None:
            return None
        last = self.last_contact
        if last.tzinfo is None and now.tzinfo is not None:
            last = last.replace(tzinfo=now.tzinfo)
        elif last.tzinfo is not None and now.tzinfo is None:
            now = now.replace(tzinfo=last.tzinfo)
        return (now - last).days

    @classmethod
    def from_api(cls, record: dict) -> "Lead":
        """Create Lead from an Airtable record."""
        fields = record.get("fields", {})
        last_contact = None
        raw = fields.get(FIELD_LAST_MODIFIED)
        if raw:
            try:
                last_contact = datetime.fromisoformat(raw.replace("Z", "+00:00"))
            except ValueError:
                last_contact = None
        return cls(
            id=record["id"],
            first_name=fields.get(FIELD_FIRST_NAME, ""),
            last_name=fields.get(FIELD_LAST_NAME, ""),
            phone=fields.get(FIELD_PHONE, ""),
            status=fields.get(FIELD_STATUS, ""),
            last_contact=last_contact,
        )


def lead_tier(lead: Lead, now: datetime) -> PriorityTier:
    """>15 days without contact is P1, >7 P2, >3 P3, else P4.

    A lead never contacted counts as the most overdue.
    """
    days = lead.days_since_contact(now)
    if days is None or days > 15:
        return PriorityTier.P1_CRITICAL
    if days > 7:
        return PriorityTier.P2_HIGH
    if days > 3:
        return PriorityTier.P3_MEDIUM
    return PriorityTier.P4_LOW


def bucket_leads(leads: list[Lead], now: datetime) -> dict[PriorityTier, list[Lead]]:
    buckets: dict[PriorityTier, list[Lead]] = {tier: [] for tier in PriorityTier}
    for lead in leads:
        buckets[lead_tier(lead, now)].append(lead)
    return buckets


@dataclass
class CallAction:
    """A call session to schedule for a group of stale leads."""

    tier: PriorityTier
    title: str
    description: str
    duration_minutes: int
    leads: list[Lead] = field(default_factory=list)
    preferred_time: str = "morning"
    category: str = CALL_SESSION

    def draft(self, due: datetime) -> dict:
        """Task-store payload for this action, due at ``due``."""
        return {
            "title": self.title,
            "content": self.description,
            "priority": self.tier.native_priority,
            "dueDate": format_ticktick_datetime(due),
            "isAllDay": False,
            "timeEstimate": self.duration_minutes,
            "tags": list(AUTO_SCHEDULED_TAGS),
        }


def generate_call_actions(buckets: dict[PriorityTier, list[Lead]]) -> list[CallAction]:
    """Call sessions for the P1 and P2 buckets; P3/P4 leads wait."""
    actions = []

    critical = buckets.get(PriorityTier.P1_CRITICAL, [])
    if critical:
        n = len(critical)
        actions.append(
            CallAction(
                tier=PriorityTier.P1_CRITICAL,
                title=f"URGENT: Relancer {n} prospects (>15j)",
                description=f"Relance critique de {n} prospects sans contact depuis plus de 15 jours",
                duration_minutes=min(120, n * 5),
                leads=critical,
            )
        )

    high = buckets.get(PriorityTier.P2_HIGH, [])
    if high:
        n = len(high)
        actions.append(
            CallAction(
                tier=PriorityTier.P2_HIGH,
                title=f"Relancer {n} prospects (7-15j)",
                description=f"Relance de {n} prospects sans contact depuis 7-15 jours",
                duration_minutes=min(90, n * 4),
                leads=high,
            )
        )

    return actions
