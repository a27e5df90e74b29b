from typing import Dict, List

from pydantic import Field

from app.schemas.records import CamelModel, CandidateRef, ConversationEntry


class SendMessageRequest(CamelModel):
    candidate_id: str = Field(..., min_length=1)
    text: str


class UnreadResponse(CamelModel):
    unread: Dict[str, int]
    total_unread: int


class ConversationsResponse(UnreadResponse):
    conversations: List[ConversationEntry]
    candidates: List[CandidateRef] = Field(default_factory=list)
    partners: List[CandidateRef] = Field(default_factory=list)
