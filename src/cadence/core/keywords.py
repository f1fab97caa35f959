"""Keyword lookup tables and the classification rule shared by the heuristics.

A table is an ordered tuple of ``KeywordRule``. ``classify`` lower-cases the
text, keeps every rule whose keyword appears in it, and returns the highest
weight (max-score wins). Pure functions - no I/O.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class KeywordRule:
    """A keyword and the weight it contributes when found in a text."""

    keyword: str
    weight: float


KeywordTable = tuple[KeywordRule, ...]


def build_table(mapping: dict[str, float]) -> KeywordTable:
    """Build a table from a ``{keyword: weight}`` mapping, keeping its order."""
    return tuple(KeywordRule(k.lower(), float(w)) for k, w in mapping.items())


def matches(text: str, table: KeywordTable) -> list[KeywordRule]:
    """Rules of ``table`` whose keyword occurs in ``text``."""
    lowered = (text or "").lower()
    return [rule for rule in table if rule.keyword in lowered]


def classify(text: str, table: KeywordTable, default: float) -> float:
    """Highest weight among the matching rules, or ``default`` if none match."""
    hits = matches(text, table)
    if not hits:
        return default
    return max(rule.weight for rule in hits)


def contains_any(text: str, keywords: tuple[str, ...] | list[str]) -> bool:
    lowered = (text or "").lower()
    return any(k in lowered for k in keywords)


# Calendar event priority used to decide which side of a conflict moves.
EVENT_PRIORITY = build_table(
    {
        "session": 5,
        "appel": 5,
        "rdv": 5,
        "client": 5,
        "business": 4,
        "formation": 4,
        "développement": 4,
        "déjeuner": 3,
        "pause": 3,
        "repos": 3,
        "personnel": 2,
        "social": 2,
        "sport": 6,
    }
)
EVENT_PRIORITY_DEFAULT = 1.0

# Urgency of a busy interval, as seen by the slot finder. 4 is most urgent;
# the slot finder turns it into a tier (5 - urgency).
SLOT_EVENT_URGENCY = build_table(
    {
        "urgent": 4,
        "critical": 4,
        "important": 3,
        "high": 3,
        "medium": 2,
    }
)
SLOT_EVENT_URGENCY_DEFAULT = 1.0

# Nested-on-purpose pairs: a call inside a work session is not a conflict.
WORK_SESSION_KEYWORDS = (
    "crm",
    "cap numérique",
    "kap",
    "matinal",
    "session",
    "intensive",
    "travail",
    "prospection",
    "formation",
)
CALL_KEYWORDS = ("appel", "rdv", "rendez-vous")

SPORT_KEYWORDS = ("sport", "gym", "musculation", "fitness", "training", "yoga", "running")

COMPLEXITY_HIGH = (
    "développement",
    "programmation",
    "code",
    "architecture",
    "design",
    "recherche",
    "analyse",
    "stratégie",
)
COMPLEXITY_MEDIUM = ("rédaction", "planning", "organisation", "formation", "apprentissage", "révision")
COMPLEXITY_LOW = ("appel", "email", "lecture", "vérification", "mise à jour", "simple")

URGENCY_HIGH = ("urgent", "asap", "priorité", "important", "critique", "deadline")
URGENCY_MEDIUM = ("bientôt", "prochainement", "planifié")
URGENCY_LOW = ("optionnel", "si possible", "when possible")

LONG_TASK_KEYWORDS = ("développement", "création", "rédaction", "formation", "recherche")
SHORT_TASK_KEYWORDS = ("appel", "email", "check", "vérification", "lecture")

BUSINESS_KEYWORDS = ("client", "business", "travail", "projet", "développement")
PROFESSIONAL_KEYWORDS = ("professionnel", "business")
PERSONAL_KEYWORDS = ("personnel", "privé")

CREATIVE_KEYWORDS = ("développement", "création", "design", "rédaction")

SPECIAL_TAGS = build_table(
    {
        "urgent": 0.9,
        "important": 0.8,
        "business": 0.7,
        "client": 0.8,
        "formation": 0.6,
        "personnel": 0.3,
        "optionnel": 0.2,
    }
)

# Inbox routing: project name -> (keywords, weight). The project with the
# highest weighted hit count wins.
INBOX_PROJECTS: dict[str, tuple[tuple[str, ...], float]] = {
    "Professionnel": (("travail", "boulot", "job", "meeting", "réunion", "administration"), 1.0),
    "Lead Gen": (("lead generation", "prospection", "linkedin", "cold email", "outreach"), 1.8),
    "Closing": (("closing", "appel vente", "négociation", "proposition commerciale", "devis"), 1.8),
    "Création de formations": (("formation", "cours", "module", "vidéo formation"), 2.0),
    "Santé": (("sport", "musculation", "gym", "fitness", "yoga", "running", "santé", "médecin"), 1.8),
    "Finances": (("finance", "banque", "impôts", "comptabilité", "facture", "paiement", "budget"), 1.5),
    "Appartement": (("appartement", "logement", "loyer", "déménagement", "travaux maison"), 1.5),
    "Véhicules": (("voiture", "moto", "trottinette", "véhicule", "contrôle technique", "garage"), 1.5),
    "Famille": (("famille", "maman", "papa", "frère", "sœur", "parents"), 1.5),
    "achats": (("acheter", "commander", "shopping", "amazon", "livraison", "colis"), 1.3),
}


def classify_project(text: str, rules: dict[str, tuple[tuple[str, ...], float]] | None = None) -> str | None:
    """Best project name for ``text``, or None when no keyword matches."""
    rules = INBOX_PROJECTS if rules is None else rules
    lowered = (text or "").lower()
    best_name = None
    best_score = 0.0
    for name, (keywords, weight) in rules.items():
        hits = sum(1 for k in keywords if k in lowered)
        score = hits * weight
        if score > best_score:
            best_name, best_score = name, score
    return best_name


@dataclass
class KeywordTables:
    """The swappable tables, bundled so they can be loaded from config."""

    event_priority: KeywordTable = EVENT_PRIORITY
    slot_event_urgency: KeywordTable = SLOT_EVENT_URGENCY
    special_tags: KeywordTable = SPECIAL_TAGS
    work_session: tuple[str, ...] = WORK_SESSION_KEYWORDS
    calls: tuple[str, ...] = CALL_KEYWORDS
    sport: tuple[str, ...] = SPORT_KEYWORDS

    @classmethod
    def from_dict(cls, data: dict) -> "KeywordTables":
        """Override any subset of the defaults from a JSON-style dict."""
        tables = cls()
        if "event_priority" in data:
            tables.event_priority = build_table(data["event_priority"])
        if "slot_event_urgency" in data:
            tables.slot_event_urgency = build_table(data["slot_event_urgency"])
        if "special_tags" in data:
            tables.special_tags = build_table(data["special_tags"])
        if "work_session" in data:
            tables.work_session = tuple(k.lower() for k in data["work_session"])
        if "calls" in data:
            tables.calls = tuple(k.lower() for k in data["calls"])
        if "sport" in data:
            tables.sport = tuple(k.lower() for k in data["sport"])
        return tables


DEFAULT_TABLES = KeywordTables()
