"""Review automation database models."""

from .base import Base
from .tenant import Tenant, TenantMember, User
from .location import Location
from .review import BrandVoice, Review, ReviewResponse, ReviewSentiment
from .report import Report
from .workflow import AutomationWorkflow
from .execution import AutomationExecution
from .log import AutomationLog

__all__ = [
    "Base",
    "Tenant",
    "TenantMember",
    "User",
    "Location",
    "Review",
    "ReviewSentiment",
    "ReviewResponse",
    "BrandVoice",
    "Report",
    "AutomationWorkflow",
    "AutomationExecution",
    "AutomationLog",
]
