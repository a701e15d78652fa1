"""
Shared fixtures: engine settings, in-memory stores and a synthetic
two-camp poll.
"""

from datetime import datetime, timedelta, timezone

import pytest

from config import LandscapeSettings
from database.models import Statement, VOTE_AGREE, VOTE_DISAGREE, VOTE_PASS
from tests.fakes import (
    FakeJobQueue,
    FakeLandscapeStore,
    FakeVoteStore,
    FakeWeightStore,
    RecordingMetrics,
)

POLL_ID = "poll_1"
BASE_TIME = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

# Camp A agrees with s1-s3 and rejects s4-s5; camp B the reverse.
# Everyone agrees with s6.
CAMP_A_VOTES = {"s1": 1, "s2": 1, "s3": 1, "s4": -1, "s5": -1, "s6": 1}
CAMP_B_VOTES = {"s1": -1, "s2": -1, "s3": -1, "s4": 1, "s5": 1, "s6": 1}


def make_statements(poll_id: str = POLL_ID, count: int = 6, start: datetime = BASE_TIME):
    return [
        Statement(
            id=f"s{i}",
            poll_id=poll_id,
            text=f"Statement {i}",
            created_at=start + timedelta(minutes=i),
        )
        for i in range(1, count + 1)
    ]


def populate_two_camps(store: FakeVoteStore, voters: int, poll_id: str = POLL_ID) -> None:
    """Alternate voters between camps; every third voter passes on one statement"""
    for n in range(voters):
        voter_id = f"v{n:03d}"
        pattern = CAMP_A_VOTES if n % 2 == 0 else CAMP_B_VOTES
        skipped = f"s{(n % 5) + 1}" if n % 3 == 0 else None
        for statement_id, value in pattern.items():
            if statement_id == skipped:
                store.add_vote(voter_id, statement_id, VOTE_PASS)
            else:
                store.add_vote(voter_id, statement_id, VOTE_AGREE if value > 0 else VOTE_DISAGREE)


@pytest.fixture
def settings():
    return LandscapeSettings()


@pytest.fixture
def vote_store():
    return FakeVoteStore(statements=make_statements())


@pytest.fixture
def landscape_store():
    return FakeLandscapeStore()


@pytest.fixture
def weight_store():
    return FakeWeightStore()


@pytest.fixture
def job_queue():
    return FakeJobQueue()


@pytest.fixture
def metrics():
    return RecordingMetrics()
