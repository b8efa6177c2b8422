"""
LFM Test Configuration
======================

Shared fixtures for all tests.
"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeNow:
    """Manually advanced datetime clock."""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 9, 0, 0)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


# Environment fixtures
@pytest.fixture
def test_config():
    """Get test environment configuration."""
    from lfm.config import get_environment_config, TEST_ENV
    return get_environment_config(TEST_ENV)


@pytest.fixture
def engine_weights():
    """Default engine weights, independent of the YAML file."""
    from lfm.weights import EngineWeights
    return EngineWeights()


# Clocks
@pytest.fixture
def clock():
    """Fake monotonic clock for cache expiry."""
    return FakeClock()


@pytest.fixture
def fake_now():
    """Fake datetime clock for the learning components."""
    return FakeNow()


# Sample data fixtures
@pytest.fixture
def termination_text():
    """Grievance text describing a termination without progressive discipline."""
    return (
        "The grievant was terminated without any prior warning or progressive discipline. "
        "Written statements from two witnesses contradict the employer. "
        "The discharge violates Article 12.3 of the agreement."
    )


@pytest.fixture
def termination_record():
    """Fully populated termination feature record."""
    from lfm.models import FeatureRecord
    return FeatureRecord(
        case_type="termination",
        violation_type="progressive_discipline",
        contract_articles={"12.3"},
        procedural_issues={"no_prior_discipline"},
        evidence_strength="high",
        just_cause_tests={1, 7},
        description="Employee terminated without progressive discipline",
        outcome="granted",
    )


@pytest.fixture
def sample_cases():
    """Small precedent set with mixed outcomes."""
    from lfm.models import FeatureRecord, HistoricalCase
    return [
        HistoricalCase(
            case_id="case-001",
            features=FeatureRecord(
                case_type="termination",
                violation_type="progressive_discipline",
                contract_articles={"12.3"},
                evidence_strength="high",
                description="Worker discharged without prior warning or progressive discipline",
            ),
            outcome="granted",
            embedding=(1.0, 0.0, 0.0),
        ),
        HistoricalCase(
            case_id="case-002",
            features=FeatureRecord(
                case_type="termination",
                violation_type="progressive_discipline",
                evidence_strength="medium",
                description="Termination after a single verbal warning",
            ),
            outcome="denied",
            embedding=(0.6, 0.8, 0.0),
        ),
        HistoricalCase(
            case_id="case-003",
            features=FeatureRecord(
                case_type="overtime",
                violation_type="flsa_violation",
                contract_articles={"7.1"},
                description="Unpaid overtime hours for weekend shifts",
            ),
            outcome="settled",
            embedding=(0.0, 0.0, 1.0),
            provider="openai",
        ),
    ]


@pytest.fixture
def sample_corpus(sample_cases):
    """CaseCorpus holding the sample cases."""
    from lfm.storage import CaseCorpus
    return CaseCorpus(sample_cases)


# Mock ensemble members
@pytest.fixture
def make_model():
    """Factory for async ensemble members returning a fixed prediction."""
    def _make(outcome: str, confidence: float):
        return AsyncMock(return_value={"outcome": outcome, "confidence": confidence})
    return _make
