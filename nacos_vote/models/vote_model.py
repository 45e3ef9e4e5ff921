from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, Optional


class Candidate(BaseModel):
    id: str
    name: str
    description: Optional[str] = None


class TempVote(BaseModel):
    """One buffered vote, as kept under `tempVotes` in browser storage."""
    model_config = ConfigDict(populate_by_name=True)

    candidate_id: str = Field(..., alias="candidateId")
    candidate_name: str = Field(..., alias="candidateName")


# position -> TempVote
PendingVotes = Dict[str, TempVote]
