"""Demographic agreement heatmap

Statement x demographic category grid of agreement percentages.
Percentage = (agree - disagree) / (agree + disagree + pass) * 100, so a
category that mostly passes reads as lukewarm rather than unanimous.

Categories with fewer than privacy_threshold voters in the poll are
suppressed entirely (listed by name, no numbers). This is a minimum-count
rule, not differential privacy.
"""

from collections import defaultdict
from typing import Dict, Optional

from config import get_logger, LandscapeSettings
from deliberation.cache import TTLCache
from deliberation.matrix import VoteTally
from exceptions import ValidationError

logger = get_logger(__name__).bind(component="demographic_heatmap")

DEMOGRAPHIC_ATTRIBUTES = ("gender", "age_group", "ethnicity", "political_party")


def agreement_percentage(tally: VoteTally) -> Optional[int]:
    if tally.total == 0:
        return None
    return round((tally.agree - tally.disagree) / tally.total * 100)


class DemographicHeatmapService:
    """Per-category agreement grid, cached per (poll, attribute, threshold)"""

    def __init__(self, vote_store, cache: TTLCache, settings: LandscapeSettings):
        self.votes = vote_store
        self.cache = cache
        self.settings = settings

    async def get_heatmap(
        self,
        poll_id: str,
        attribute: str,
        privacy_threshold: Optional[int] = None,
    ) -> dict:
        if attribute not in DEMOGRAPHIC_ATTRIBUTES:
            raise ValidationError(
                f"unknown demographic attribute: {attribute}", field="attribute", value=attribute
            )
        if privacy_threshold is None:
            privacy_threshold = self.settings.heatmap_privacy_threshold
        if privacy_threshold < 1:
            raise ValidationError(
                "privacy_threshold must be at least 1",
                field="privacy_threshold",
                value=privacy_threshold,
            )

        key = (poll_id, attribute, privacy_threshold)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        heatmap = await self._build(poll_id, attribute, privacy_threshold)
        self.cache.set(key, heatmap)
        return heatmap

    async def _build(self, poll_id: str, attribute: str, privacy_threshold: int) -> dict:
        statements = await self.votes.list_approved_statements(poll_id)
        votes = await self.votes.list_votes([s.id for s in statements])
        attributes = await self.votes.list_voter_attributes(poll_id, attribute)
        category_of: Dict[str, str] = {a.voter_id: a.category for a in attributes}

        voters_per_category: Dict[str, set] = defaultdict(set)
        tallies: Dict[str, Dict[str, VoteTally]] = defaultdict(lambda: defaultdict(VoteTally))
        for vote in votes:
            category = category_of.get(vote.voter_id)
            if category is None:
                continue
            voters_per_category[category].add(vote.voter_id)
            tallies[vote.statement_id][category].add(vote.value)

        visible = sorted(c for c, v in voters_per_category.items() if len(v) >= privacy_threshold)
        suppressed = sorted(c for c, v in voters_per_category.items() if len(v) < privacy_threshold)

        rows = []
        for statement in statements:
            cells = {}
            for category in visible:
                tally = tallies[statement.id].get(category, VoteTally())
                cells[category] = {
                    "agree": tally.agree,
                    "disagree": tally.disagree,
                    "pass": tally.passed,
                    "total": tally.total,
                    "agreement_percentage": agreement_percentage(tally),
                }
            rows.append({"statement_id": statement.id, "text": statement.text, "cells": cells})

        logger.debug(
            "built demographic heatmap",
            poll_id=poll_id,
            attribute=attribute,
            categories=len(visible),
            suppressed=len(suppressed),
        )
        return {
            "poll_id": poll_id,
            "attribute": attribute,
            "privacy_threshold": privacy_threshold,
            "categories": [
                {"category": c, "voter_count": len(voters_per_category[c])} for c in visible
            ],
            "suppressed_categories": suppressed,
            "statements": rows,
        }

    def invalidate(self, poll_id: str) -> int:
        return self.cache.delete_where(lambda key: key[0] == poll_id)
