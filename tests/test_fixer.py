"""Tests for the content fixer."""

from __future__ import annotations

import pytest

from conftest import make_habit, make_research

from habitkit.content.fixer import UNFIXABLE_KINDS, ContentFixer
from habitkit.content.schema import ErrorKind, Habit, ResearchArticle, WarningKind
from habitkit.content.validator import ContentValidator


def _habits(*records: dict, source: str = "habits.json") -> list[Habit]:
    return [Habit.from_dict(r, source=source) for r in records]


def _research(*records: dict) -> list[ResearchArticle]:
    return [ResearchArticle.from_dict(r, source="research_articles.json") for r in records]


@pytest.fixture
def validator() -> ContentValidator:
    return ContentValidator(current_year=2026)


def _fix(validator: ContentValidator, habits, research):
    result = validator.validate_all(habits, research)
    return ContentFixer().auto_fix(habits, research, result.errors, result.warnings)


class TestDispatch:
    def test_every_error_kind_is_classified(self):
        fixer = ContentFixer()
        assert fixer.fixable_kinds | UNFIXABLE_KINDS == set(ErrorKind)
        assert not fixer.fixable_kinds & UNFIXABLE_KINDS

    def test_nothing_to_fix(self, validator: ContentValidator):
        habits, research = _habits(make_habit()), _research(make_research())
        result = _fix(validator, habits, research)
        assert result.fixes == []
        assert result.unfixable_errors == []
        assert result.habits == habits
        assert result.research == research

    def test_inputs_untouched(self, validator: ContentValidator):
        habits = _habits(make_habit(difficulty="hard"))
        result = _fix(validator, habits, _research(make_research()))
        assert habits[0].difficulty == "hard"
        assert result.habits[0].difficulty == "advanced"


class TestDuplicateIds:
    def test_rename_second_meditate(self, validator: ContentValidator):
        habits = _habits(make_habit("meditate", title="Meditate")) + _habits(
            make_habit("meditate", title="Meditate Again"), source="habits/mind-habits.json"
        )
        result = _fix(validator, habits, _research(make_research(relatedHabits=[])))

        assert [h.id for h in result.habits] == ["meditate", "meditate_1"]
        assert result.habits[1].title == "Meditate Again"
        fix = result.fixes[0]
        assert fix.content_type == "habit"
        assert fix.item_id == "meditate"
        assert (fix.field, fix.old_value, fix.new_value) == ("id", "meditate", "meditate_1")
        assert fix.reason == "Renamed duplicate ID to make it unique"

        revalidated = validator.validate_all(result.habits, result.research)
        assert ErrorKind.DUPLICATE_ID not in [e.kind for e in revalidated.errors]
        assert revalidated.is_valid

    def test_three_copies(self, validator: ContentValidator):
        habits = _habits(make_habit("a"), make_habit("a"), make_habit("a"))
        result = _fix(validator, habits, _research(make_research(relatedHabits=[])))
        assert [h.id for h in result.habits] == ["a", "a_1", "a_2"]
        assert len(result.fixes) == 2

    def test_skips_taken_suffix(self, validator: ContentValidator):
        habits = _habits(make_habit("a"), make_habit("a_1"), make_habit("a"))
        result = _fix(validator, habits, _research(make_research(relatedHabits=[])))
        assert [h.id for h in result.habits] == ["a", "a_1", "a_2"]

    def test_research_duplicates(self, validator: ContentValidator):
        research = _research(make_research(), make_research())
        result = _fix(validator, _habits(make_habit()), research)
        assert [r.id for r in result.research] == ["walking-study", "walking-study_1"]
        assert result.fixes[0].content_type == "research"


class TestMissingFields:
    def test_fills_defaults(self, validator: ContentValidator):
        record = make_habit()
        del record["title"]
        record["category"] = ""
        result = _fix(validator, _habits(record), _research(make_research()))

        habit = result.habits[0]
        assert habit.title == "Untitled Habit"
        assert habit.category == "general"
        assert [(f.field, f.old_value) for f in result.fixes] == [("title", None), ("category", "")]
        assert result.unfixable_errors == []

    def test_research_defaults(self, validator: ContentValidator):
        record = make_research()
        del record["content"]
        record["readingTime"] = None
        result = _fix(validator, _habits(make_habit()), _research(record))
        article = result.research[0]
        assert article.content == "Content not available"
        assert article.reading_time == 5

    def test_no_default_is_unfixable(self, validator: ContentValidator):
        record = make_habit()
        del record["instructions"]
        result = _fix(validator, _habits(record), _research(make_research()))
        assert [e.field for e in result.unfixable_errors] == ["instructions"]
        assert result.fixes == []

    def test_missing_id_is_unfixable(self, validator: ContentValidator):
        record = make_habit()
        del record["id"]
        result = _fix(validator, _habits(record), _research(make_research(relatedHabits=[])))
        assert [e.field for e in result.unfixable_errors] == ["id"]


class TestValueRepairs:
    @pytest.mark.parametrize(
        "old,new",
        [("hard", "advanced"), ("medium", "intermediate"), ("Simple", "beginner"), ("weird", "beginner")],
    )
    def test_difficulty_synonyms(self, validator: ContentValidator, old: str, new: str):
        result = _fix(validator, _habits(make_habit(difficulty=old)), _research(make_research()))
        assert result.habits[0].difficulty == new
        assert result.fixes[0].old_value == old

    def test_research_difficulty(self, validator: ContentValidator):
        result = _fix(
            validator, _habits(make_habit()), _research(make_research(difficulty="moderate"))
        )
        assert result.research[0].difficulty == "intermediate"

    def test_invalid_frequency(self, validator: ContentValidator):
        result = _fix(
            validator, _habits(make_habit(frequency="sometimes")), _research(make_research())
        )
        assert result.habits[0].frequency == {"type": "daily"}
        assert result.fixes[0].reason == "Added default daily frequency"

    def test_empty_frequency_gets_default(self, validator: ContentValidator):
        result = _fix(validator, _habits(make_habit(frequency="")), _research(make_research()))
        assert result.habits[0].frequency == {"type": "daily"}
        assert result.fixes[0].old_value == ""

    def test_absent_frequency_left_alone(self, validator: ContentValidator):
        record = make_habit()
        del record["frequency"]
        result = _fix(validator, _habits(record), _research(make_research()))
        assert result.habits[0].frequency is None
        assert result.fixes == []

    def test_wrong_type_is_unfixable(self, validator: ContentValidator):
        result = _fix(validator, _habits(make_habit(instructions=42)), _research(make_research()))
        assert [e.kind for e in result.unfixable_errors] == [ErrorKind.INVALID_FIELD_TYPE]
        assert result.habits[0].instructions == 42


class TestWarningRepairs:
    def test_prune_ghost_habit(self, validator: ContentValidator):
        research = _research(make_research(relatedHabits=["morning-walk", "ghost-habit"]))
        result = _fix(validator, _habits(make_habit()), research)

        assert result.research[0].related_habits == ["morning-walk"]
        fix = result.fixes[0]
        assert fix.field == "related_habits"
        assert fix.old_value == ["morning-walk", "ghost-habit"]
        assert fix.new_value == ["morning-walk"]
        assert fix.reason == "Removed non-existent habit references: ghost-habit"
        assert validator.validate_all(result.habits, result.research).warnings == []

    def test_prune_records_once_per_article(self, validator: ContentValidator):
        research = _research(make_research(relatedHabits=["ghost-1", "ghost-2"]))
        result = _fix(validator, _habits(make_habit()), research)
        assert result.research[0].related_habits == []
        assert len(result.fixes) == 1

    def test_prune_reaches_renamed_duplicate(self, validator: ContentValidator):
        habits = _habits(make_habit(researchIds=["r"]))
        research = _research(
            make_research("r", relatedHabits=["morning-walk"]),
            make_research("r", relatedHabits=["ghost"]),
        )
        result = _fix(validator, habits, research)

        assert [(r.id, r.related_habits) for r in result.research] == [
            ("r", ["morning-walk"]),
            ("r_1", []),
        ]
        habit_ids = {h.id for h in result.habits}
        assert all(ref in habit_ids for r in result.research for ref in r.related_habits)
        prune = [f for f in result.fixes if f.field == "related_habits"]
        assert [(f.item_id, f.old_value) for f in prune] == [("r_1", ["ghost"])]

    def test_optional_field_lands_on_renamed_duplicate(self, validator: ContentValidator):
        second = make_research("r", relatedHabits=["morning-walk"])
        del second["keyTakeaways"]
        habits = _habits(make_habit(researchIds=["r"]))
        research = _research(make_research("r", relatedHabits=["morning-walk"]), second)
        result = _fix(validator, habits, research)

        assert result.research[0].key_takeaways == ["Short walks improve perceived energy"]
        assert result.research[1].key_takeaways == []
        fill = [f for f in result.fixes if f.field == "key_takeaways"]
        assert [f.item_id for f in fill] == ["r_1"]

    def test_prune_non_string_references(self, validator: ContentValidator):
        research = _research(make_research(relatedHabits=["morning-walk", {"id": "x"}, 7]))
        result = _fix(validator, _habits(make_habit()), research)
        assert result.research[0].related_habits == ["morning-walk"]
        assert result.fixes[0].reason == "Removed non-existent habit references: {'id': 'x'}, 7"

    def test_absent_optional_field_filled(self, validator: ContentValidator):
        record = make_research()
        del record["keyTakeaways"]
        result = _fix(validator, _habits(make_habit()), _research(record))
        assert result.research[0].key_takeaways == []
        assert result.fixes[0].old_value is None

    def test_empty_optional_field_left_alone(self, validator: ContentValidator):
        result = _fix(validator, _habits(make_habit(researchIds=[])), [])
        assert result.habits[0].research_ids == []
        assert result.fixes == []

    def test_other_warnings_ignored(self, validator: ContentValidator):
        habits = _habits(make_habit(timeMinutes=7))
        result = _fix(validator, habits, _research(make_research()))
        assert result.fixes == []
        assert result.habits[0].time_minutes == 7


class TestUnfixable:
    def test_unknown_research_reference_passed_back(self, validator: ContentValidator):
        habits = _habits(make_habit(researchIds=["walking-study", "nope"]))
        result = _fix(validator, habits, _research(make_research()))
        assert [e.kind for e in result.unfixable_errors] == [ErrorKind.UNKNOWN_RESEARCH_REFERENCE]
        assert result.habits[0].research_ids == ["walking-study", "nope"]

    def test_invalid_id_passed_back(self, validator: ContentValidator):
        result = _fix(
            validator, _habits(make_habit("bad id")), _research(make_research(relatedHabits=[]))
        )
        assert [e.kind for e in result.unfixable_errors] == [ErrorKind.INVALID_ID_FORMAT]


class TestIdempotence:
    def test_second_pass_is_a_no_op(self, validator: ContentValidator):
        record = make_habit("dup", difficulty="hard")
        del record["description"]
        habits = _habits(record, make_habit("dup"))
        research = _research(make_research(relatedHabits=["dup", "ghost"]))

        first = _fix(validator, habits, research)
        assert first.fixes
        second = _fix(validator, first.habits, first.research)
        assert second.fixes == []
        assert second.habits == first.habits
        assert second.research == first.research


class TestReport:
    def test_empty(self):
        assert ContentFixer().generate_report([]) == "No fixes applied."

    def test_grouped(self, validator: ContentValidator):
        habits = _habits(make_habit(difficulty="hard"))
        research = _research(make_research(relatedHabits=["morning-walk", "ghost-habit"]))
        fixer = ContentFixer()
        found = validator.validate_all(habits, research)
        fixer.auto_fix(habits, research, found.errors, found.warnings)

        report = fixer.generate_report()
        assert report.startswith("Applied 2 fixes:")
        assert "Habit Fixes (1):" in report
        assert "  - morning-walk: Corrected invalid difficulty level" in report
        assert '    difficulty: "hard" → "advanced"' in report
        assert "Research Article Fixes (1):" in report
        assert report.index("Habit Fixes") < report.index("Research Article Fixes")

    def test_absent_rendered_as_undefined(self, validator: ContentValidator):
        record = make_habit()
        del record["title"]
        result = _fix(validator, _habits(record), _research(make_research()))
        report = ContentFixer().generate_report(result.fixes)
        assert '    title: undefined → "Untitled Habit"' in report
