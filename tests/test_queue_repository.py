"""
Tests for ClusteringQueueRepository error handling

The pool refuses every connection, so each call fails before any SQL runs.
"""

import asyncio

import pytest

from database.repositories_async.queue import ClusteringQueueRepository
from exceptions import QueueError


class UnreachablePool:
    def acquire(self):
        raise ConnectionError("connection lost")


@pytest.fixture
def repo():
    return ClusteringQueueRepository(UnreachablePool())


class TestConnectionFailures:
    def test_enqueue(self, repo):
        with pytest.raises(QueueError) as exc_info:
            asyncio.run(repo.enqueue("poll_1"))
        assert exc_info.value.poll_id == "poll_1"
        assert exc_info.value.is_retryable
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_get_next_job(self, repo):
        with pytest.raises(QueueError) as exc_info:
            asyncio.run(repo.get_next_job())
        assert "connection lost" in str(exc_info.value)

    def test_mark_completed(self, repo):
        with pytest.raises(QueueError) as exc_info:
            asyncio.run(repo.mark_completed(7))
        assert exc_info.value.queue_id == 7

    def test_mark_failed(self, repo):
        with pytest.raises(QueueError) as exc_info:
            asyncio.run(repo.mark_failed(7, "boom"))
        assert exc_info.value.queue_id == 7
