"""Async PostgreSQL repositories using asyncpg connection pooling"""

from database.repositories_async.base import BaseRepository
from database.repositories_async.landscape import LandscapeRepository
from database.repositories_async.queue import ClusteringQueueRepository
from database.repositories_async.votes import VoteRepository
from database.repositories_async.weights import WeightRepository

__all__ = [
    "BaseRepository",
    "LandscapeRepository",
    "ClusteringQueueRepository",
    "VoteRepository",
    "WeightRepository",
]
