from app.schemas.records import (
    ApplicationRecord,
    CandidateRef,
    CompanyRecord,
    ConversationEntry,
    JobRecord,
)
from app.schemas.stats import (
    AdminOverview,
    AssociationsResponse,
    CompanyAssociationResponse,
    CompanySummary,
    DashboardStats,
    IndustryCount,
    RecordsPayload,
    TierStats,
    TierStatsResponse,
)
from app.schemas.messages import ConversationsResponse, SendMessageRequest, UnreadResponse

__all__ = [
    "ApplicationRecord",
    "CandidateRef",
    "CompanyRecord",
    "ConversationEntry",
    "JobRecord",
    "AdminOverview",
    "AssociationsResponse",
    "CompanyAssociationResponse",
    "CompanySummary",
    "DashboardStats",
    "IndustryCount",
    "RecordsPayload",
    "TierStats",
    "TierStatsResponse",
    "ConversationsResponse",
    "SendMessageRequest",
    "UnreadResponse",
]
