from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

import gathering_calc.persistence as persistence
import gathering_calc.runtime_logging as runtime_logging
from gathering_calc.form_state import GatheringForm, MaterialLine
from gathering_calc.persistence import InMemoryHistoryRepository


@pytest.fixture(autouse=True)
def isolated_runtime_log(tmp_path, monkeypatch) -> Path:
    log_dir = Path(tmp_path) / "logs"
    monkeypatch.setattr(runtime_logging, "LOG_DIR", log_dir)
    monkeypatch.setattr(runtime_logging, "RUNTIME_EVENTS_LOG_FILE", log_dir / "runtime_events.jsonl")
    monkeypatch.setattr(persistence, "STORE_DIR", persistence.STORE_DIR)
    return log_dir


@pytest.fixture
def picnic_form() -> GatheringForm:
    return GatheringForm(
        title="Picnic",
        date=date(2026, 5, 2),
        location="Riverside Park",
        participant_count="10",
        fee_per_person="5000",
        materials=[MaterialLine(name="Mats", unit_price="1000", quantity="3")],
        venue_fee="2000",
        platform_fee_percent="10",
    )


@pytest.fixture
def memory_repo() -> InMemoryHistoryRepository:
    return InMemoryHistoryRepository()
