"""Tests for keyword tables and classification."""

from cadence.core import keywords as kw
from cadence.core.keywords import KeywordRule, KeywordTables, build_table, classify, classify_project, matches


class TestClassify:
    def test_default_when_nothing_matches(self):
        assert classify("Lunch", kw.EVENT_PRIORITY, 1.0) == 1.0

    def test_highest_weight_wins(self):
        # "pause" (3) and "client" (5) both match
        assert classify("Pause avant RDV client", kw.EVENT_PRIORITY, 1.0) == 5

    def test_sport_beats_everything(self):
        assert classify("Session sport", kw.EVENT_PRIORITY, 1.0) == 6

    def test_case_insensitive(self):
        assert classify("URGENT review", kw.SLOT_EVENT_URGENCY, 1.0) == 4

    def test_empty_text(self):
        assert classify("", kw.EVENT_PRIORITY, 1.0) == 1.0
        assert classify(None, kw.EVENT_PRIORITY, 1.0) == 1.0

    def test_matches_keeps_table_order(self):
        table = build_table({"b": 1, "a": 2})
        assert matches("a b", table) == [KeywordRule("b", 1.0), KeywordRule("a", 2.0)]


class TestClassifyProject:
    def test_weighted_hits_pick_project(self):
        assert classify_project("préparer le module de formation vidéo") == "Création de formations"

    def test_no_match(self):
        assert classify_project("something unrelated") is None

    def test_custom_rules(self):
        rules = {"Garden": (("plant", "seed"), 1.0), "Kitchen": (("knife",), 5.0)}
        assert classify_project("plant seed with a knife", rules) == "Kitchen"


class TestKeywordTables:
    def test_defaults(self):
        tables = KeywordTables()
        assert tables.event_priority == kw.EVENT_PRIORITY
        assert tables.sport == kw.SPORT_KEYWORDS

    def test_partial_override(self):
        tables = KeywordTables.from_dict({"event_priority": {"Standup": 9}, "sport": ["Climbing"]})
        assert classify("daily standup", tables.event_priority, 1.0) == 9
        assert tables.sport == ("climbing",)
        assert tables.calls == kw.CALL_KEYWORDS
