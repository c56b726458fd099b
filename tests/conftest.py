"""Central Pytest Fixtures for the Journal Pattern Reflection Engine.

Fixtures included:
- Entries: make_entry / make_entries factories, eligible_entries
- Model: FakeClient (scripted generate_once), reply / failure helpers
- Cache: ManualClock, pattern_cache
- Config: app_config, isolated environment (no real keys or config files)

No test talks to Gemini or to the system keyring.
"""

from __future__ import annotations

import json
import logging
from datetime import date, timedelta
from pathlib import Path

import pytest

from journal_patterns.ai.cache import PatternCache
from journal_patterns.config import AppConfig, reset_config
from journal_patterns.core.models import (
    JournalEntry,
    ModelAttempt,
    ModelFailure,
    ModelReply,
    PromptRequest,
)

START_DATE = date(2026, 3, 1)

SPOKEN_REPLY = {
    "shouldSpeak": True,
    "timeRange": "over the past week",
    "reflection": "Over the past week, mornings keep showing up as the quietest part of your days.",
    "themes": ["mornings", "quiet"],
    "invitation": None,
}


# =============================================================================
# Helper Functions
# =============================================================================


def make_entry(
    entry_date: str | date,
    body: str = "Walked to the park and wrote for a bit.",
    vent: bool = False,
    **fields: str,
) -> JournalEntry:
    """Build a JournalEntry; dates may be passed as ``date`` objects."""
    if isinstance(entry_date, date):
        entry_date = entry_date.isoformat()
    return JournalEntry(entry_date=entry_date, body=body, vent_entry=vent, **fields)


def make_entries(
    count: int,
    step_days: int = 2,
    start: date = START_DATE,
    vent: bool = False,
) -> list[JournalEntry]:
    """Build ``count`` entries, one every ``step_days`` days, oldest first."""
    return [
        make_entry(start + timedelta(days=i * step_days), body=f"Entry number {i}.", vent=vent)
        for i in range(count)
    ]


def reply(text: str | dict, finish_reason: str | None = "STOP") -> ModelReply:
    if isinstance(text, dict):
        text = json.dumps(text)
    return ModelReply(
        model_name="models/gemini-2.0-flash",
        text=text,
        finish_reason=finish_reason,
        parts_count=1,
    )


def failure(status: int | None = 429, retry_after: int | None = 30) -> ModelFailure:
    return ModelFailure(
        model_name="models/gemini-2.0-flash",
        error_status=status,
        error_message="Resource has been exhausted (e.g. check quota).",
        retry_after_seconds=retry_after,
    )


def write_entries_file(path: Path, entries: list[JournalEntry]) -> Path:
    rows = [e.model_dump(mode="json") for e in entries]
    path.write_text(json.dumps(rows), encoding="utf-8")
    return path


# =============================================================================
# Fakes
# =============================================================================


class FakeClient:
    """Stands in for AIClient; replays scripted attempts in order.

    The last attempt repeats once the script is exhausted.
    """

    def __init__(self, *attempts: ModelAttempt) -> None:
        self._attempts = list(attempts)
        self.calls: list[PromptRequest] = []

    def generate_once(self, request: PromptRequest) -> ModelAttempt:
        self.calls.append(request)
        index = min(len(self.calls), len(self._attempts)) - 1
        return self._attempts[index]


class ManualClock:
    """Clock returning a settable time in seconds."""

    def __init__(self, start: float = 1_800_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Keep real keys, config files and env overrides out of every test."""
    for name in ("GEMINI_API_KEY", "GEMINI_MODEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(
        "journal_patterns.config.keyring.get_password", lambda service, username: None
    )
    monkeypatch.setattr("journal_patterns.config.Path.home", lambda: tmp_path / "home")
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()
    # setup_logging() detaches the package logger from the root, which hides
    # records from caplog in later tests.
    package_logger = logging.getLogger("journal_patterns")
    package_logger.handlers = []
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def pattern_cache(clock: ManualClock) -> PatternCache:
    return PatternCache(ttl_seconds=300, clock=clock)


@pytest.fixture
def eligible_entries() -> list[JournalEntry]:
    """Five non-vent entries spanning ten days, plus one vent entry."""
    entries = make_entries(5, step_days=2, start=START_DATE)
    entries.append(make_entry(START_DATE + timedelta(days=5), body="Everything is too much.", vent=True))
    return entries
