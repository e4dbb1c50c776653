"""
Work request workflow.

Approval chain resolution, the request state machine, work queues and
YAML persistence. The HTTP routes live in the routes submodule.
"""

from .types import (
    ApprovalRecord,
    AuditAction,
    RequestPriority,
    RequestStatus,
    RequestType,
    WorkRequest,
)
from .policy import ApprovalPolicy
from .resolver import ApprovalChainResolver
from .store import RequestStore
from .service import WorkRequestService, WorkRequestStats
from .loader import load_requests_from_yaml, save_requests_to_yaml

__all__ = [
    "ApprovalRecord",
    "AuditAction",
    "RequestPriority",
    "RequestStatus",
    "RequestType",
    "WorkRequest",
    "ApprovalPolicy",
    "ApprovalChainResolver",
    "RequestStore",
    "WorkRequestService",
    "WorkRequestStats",
    "load_requests_from_yaml",
    "save_requests_to_yaml",
]
