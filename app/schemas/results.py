from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

class ResultEntry(BaseModel):
    rank: int
    username: str
    totalPoints: int
    normalSolved: int
    bonusSolved: int
    lastSubmission: Optional[datetime] = None

class ResultsOut(BaseModel):
    success: bool = True
    results: List[ResultEntry]

class TeamOut(BaseModel):
    id: int
    username: str
    totalPoints: int
    isOnline: bool
    createdAt: datetime

class TeamList(BaseModel):
    success: bool = True
    teams: List[TeamOut]

class EventOut(BaseModel):
    success: bool = True
    eventEndTime: Optional[datetime] = None
    bonusMilestone: int
