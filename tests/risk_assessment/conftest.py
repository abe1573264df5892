"""
Shared fixtures for risk assessment tests.
"""

import pytest
from unittest.mock import AsyncMock

from risk_assessment import (
    AdviceRecord,
    InMemoryAdviceBackend,
    RecommendationStore,
    RetryConfig,
    RetryPolicy,
    ScoreConfigEntry,
)


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    return AsyncMock(return_value=None)


@pytest.fixture
def sample_advice():
    return [
        AdviceRecord(min_score=0, max_score=2, risk_level="Low", advice_text="See optometrist"),
        AdviceRecord(min_score=3, max_score=5, risk_level="moderate risk", advice_text="Check yearly"),
        AdviceRecord(min_score=6, max_score=100, risk_level="HIGH", advice_text="See specialist"),
    ]


@pytest.fixture
def sample_weights():
    return [
        ScoreConfigEntry(question_id="familyGlaucoma", option_value="yes", score=3),
        ScoreConfigEntry(question_id="race", option_value="Asian", score=1),
    ]


@pytest.fixture
def backend(sample_advice, sample_weights):
    return InMemoryAdviceBackend(advice=sample_advice, weights=sample_weights)


@pytest.fixture
def retry_policy(backend, no_sleep):
    return RetryPolicy(
        config=RetryConfig(),
        refresh_credentials=backend.refresh_credentials,
        sleep=no_sleep,
    )


@pytest.fixture
def store(backend, retry_policy):
    return RecommendationStore(backend, retry_policy=retry_policy)
