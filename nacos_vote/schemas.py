# Wire shapes of the voting backend; field names mirror its JSON
from pydantic import BaseModel, EmailStr, Field
from typing import Any, Dict, List, Optional


class SignInRequest(BaseModel):
    institutionalEmail: EmailStr
    personalEmail: EmailStr
    matricNumber: str = Field(..., min_length=1)
    fullName: str = Field(..., min_length=1)
    deviceId: Optional[str] = None


class SignInResult(BaseModel):
    institutionalEmail: EmailStr
    sessionToken: str
    remainingPositions: List[str] = Field(default_factory=list)


class VoteRequest(BaseModel):
    institutionalEmail: EmailStr
    sessionToken: str
    candidateId: str
    position: str
    deviceId: Optional[str] = None


class CompleteVotingRequest(BaseModel):
    institutionalEmail: EmailStr
    sessionToken: str
    deviceId: Optional[str] = None


class AdminLoginRequest(BaseModel):
    email: EmailStr
    password: str


class CandidateTally(BaseModel):
    id: Optional[str] = None
    name: str
    votes: int = 0


class ResultsSummary(BaseModel):
    voteCounts: Dict[str, List[CandidateTally]] = Field(default_factory=dict)
    totalValidVotes: int = 0
    totalVotes: int = 0
    lastUpdated: Optional[str] = None


class VoteLogEntry(BaseModel):
    id: Optional[str] = None
    userEmail: Optional[str] = None
    matricNumber: Optional[str] = None
    position: Optional[str] = None
    # ISO string, epoch millis, or a Firestore {_seconds, _nanoseconds} map
    timestamp: Any = None


class BackupCounts(BaseModel):
    users: int = 0
    votes: int = 0
    candidates: int = 0


class BackupStatus(BaseModel):
    message: str = ""
    counts: BackupCounts = Field(default_factory=BackupCounts)
