"""
Pydantic request models for API validation
"""

from pydantic import BaseModel, field_validator

MAX_VOTER_ID_LENGTH = 128


class VoteRecordedRequest(BaseModel):
    """Body of the vote-recorded hook sent by the poll service"""

    voter_id: str

    @field_validator("voter_id")
    @classmethod
    def validate_voter_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("voter_id cannot be empty")

        v = v.strip()
        if len(v) > MAX_VOTER_ID_LENGTH:
            raise ValueError(f"voter_id too long (max {MAX_VOTER_ID_LENGTH} characters)")

        return v
