from rmadesk.schemas.communication import (
    CommunicationCreate,
    CommunicationCreateResult,
    CommunicationListResponse,
    CommunicationResponse,
)
from rmadesk.schemas.intake import (
    PublicRmaRequest,
    PublicRmaResponse,
    ShopifyReturnWebhookResponse,
)
from rmadesk.schemas.issue_details import LegacyIssueDetails, StructuredIssueDetails
from rmadesk.schemas.klaviyo import KlaviyoPushRequest, KlaviyoPushResponse
from rmadesk.schemas.rma_case import (
    AiRecommendation,
    AuditEntryResponse,
    CaseEventCreate,
    RmaCaseCreate,
    RmaCaseCreateResult,
    RmaCaseDetail,
    RmaCaseListResponse,
    RmaCaseResponse,
    RmaCaseUpdate,
    RmaCaseUpdateResult,
    RmaStatusUpdate,
    RmaTrackingUpdate,
    TicketSyncResult,
    WarrantyDecision,
)
from rmadesk.schemas.rma_report import (
    LogisticsExceptionsResponse,
    RmaKpiResponse,
    RmaKpis,
    TimeInStageResponse,
)
from rmadesk.schemas.serial_registry import (
    SerialEventCreate,
    SerialHistoryResponse,
    SerialRegistryResponse,
    SerialServiceEventResponse,
)

__all__ = [
    "AiRecommendation",
    "AuditEntryResponse",
    "CaseEventCreate",
    "CommunicationCreate",
    "CommunicationCreateResult",
    "CommunicationListResponse",
    "CommunicationResponse",
    "KlaviyoPushRequest",
    "KlaviyoPushResponse",
    "LegacyIssueDetails",
    "LogisticsExceptionsResponse",
    "PublicRmaRequest",
    "PublicRmaResponse",
    "RmaCaseCreate",
    "RmaCaseCreateResult",
    "RmaCaseDetail",
    "RmaCaseListResponse",
    "RmaCaseResponse",
    "RmaCaseUpdate",
    "RmaCaseUpdateResult",
    "RmaKpiResponse",
    "RmaKpis",
    "RmaStatusUpdate",
    "RmaTrackingUpdate",
    "SerialEventCreate",
    "SerialHistoryResponse",
    "SerialRegistryResponse",
    "SerialServiceEventResponse",
    "ShopifyReturnWebhookResponse",
    "StructuredIssueDetails",
    "TicketSyncResult",
    "TimeInStageResponse",
    "WarrantyDecision",
]
