"""Shared content fixtures.

make_habit / make_research return complete, valid records (camelCase, as on
disk) so each test only introduces the finding it is about.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

ARTICLE_BODY = (
    "A twelve week randomized trial compared brisk morning walks against a "
    "seated control group and measured self-reported energy and sleep quality."
)


def make_habit(habit_id: str = "morning-walk", **overrides) -> dict:
    habit = {
        "id": habit_id,
        "title": f"Habit {habit_id}",
        "description": "Take a short walk after waking up",
        "category": "exercise",
        "goalTags": ["energy"],
        "timeMinutes": 10,
        "difficulty": "beginner",
        "instructions": "Put on shoes and walk around the block at a brisk pace.",
        "researchIds": ["walking-study"],
        "frequency": {"type": "daily"},
    }
    habit.update(overrides)
    return habit


def make_research(article_id: str = "walking-study", **overrides) -> dict:
    article = {
        "id": article_id,
        "title": f"Study {article_id}",
        "category": "exercise_performance",
        "difficulty": "beginner",
        "tags": ["walking"],
        "readingTime": 5,
        "studyDetails": {"sampleSize": 120, "year": 2020, "journal": "Sleep Health"},
        "content": ARTICLE_BODY,
        "relatedHabits": ["morning-walk"],
        "keyTakeaways": ["Short walks improve perceived energy"],
    }
    article.update(overrides)
    return article


def write_json(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    """A valid content tree: core files, one modular file per type, nothing custom."""
    root = tmp_path / "content"
    write_json(root / "habits.json", [make_habit()])
    write_json(root / "research_articles.json", [make_research()])
    write_json(
        root / "habits" / "sleep-habits.json",
        [make_habit("wind-down", category="sleep", researchIds=["sleep-study"])],
    )
    write_json(
        root / "research" / "sleep-research.json",
        {"research": [make_research("sleep-study", relatedHabits=["wind-down"])]},
    )
    return root
