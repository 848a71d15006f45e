from __future__ import annotations

from enum import Enum

SOURCE_OPENLINE = "openline"
SOURCE_WEBSCRAPE = "webscrape"
# Sources whose writes overwrite every field regardless of the current source of truth.
AUTHORITATIVE_SOURCES = frozenset({SOURCE_OPENLINE, SOURCE_WEBSCRAPE})

APP_SOURCE_EVENT_PROCESSING = "event-processing-platform"
APP_SOURCE_EVENT_SUBSCRIBERS = "event-processing-platform-subscribers"
APP_SOURCE_API = "customer-os-api"
APP_SOURCE_UPKEEPER = "customer-os-data-upkeeper"

DEFAULT_CURRENCY = "USD"


class ContractStatus(str, Enum):
    DRAFT = "DRAFT"
    LIVE = "LIVE"
    OUT_OF_CONTRACT = "OUT_OF_CONTRACT"
    ENDED = "ENDED"


class OnboardingStatus(str, Enum):
    NOT_APPLICABLE = "NOT_APPLICABLE"
    NOT_STARTED = "NOT_STARTED"
    ON_TRACK = "ON_TRACK"
    LATE = "LATE"
    STUCK = "STUCK"
    DONE = "DONE"
    SUCCESSFUL = "SUCCESSFUL"


ONBOARDING_STATUS_ORDER = {
    OnboardingStatus.NOT_APPLICABLE.value: None,
    OnboardingStatus.NOT_STARTED.value: 1,
    OnboardingStatus.STUCK.value: 2,
    OnboardingStatus.LATE.value: 3,
    OnboardingStatus.ON_TRACK.value: 4,
    OnboardingStatus.SUCCESSFUL.value: 5,
    OnboardingStatus.DONE.value: 6,
}


class RenewalLikelihood(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    ZERO = "ZERO"


RENEWAL_LIKELIHOOD_ORDER = {
    RenewalLikelihood.HIGH.value: 40,
    RenewalLikelihood.MEDIUM.value: 30,
    RenewalLikelihood.LOW.value: 20,
    RenewalLikelihood.ZERO.value: 10,
}


class OpportunityInternalStage(str, Enum):
    OPEN = "OPEN"
    SUSPENDED = "SUSPENDED"
    CLOSED_WON = "CLOSED_WON"
    CLOSED_LOST = "CLOSED_LOST"


class FlowActionExecutionStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    TECH_ERROR = "TECH_ERROR"
    BUSINESS_ERROR = "BUSINESS_ERROR"
    SKIPPED = "SKIPPED"


class FlowStatus(str, Enum):
    INACTIVE = "INACTIVE"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    ARCHIVED = "ARCHIVED"


def source_or_default(value: str | None) -> str:
    return value or SOURCE_OPENLINE


def app_source_or_default(value: str | None) -> str:
    return value or APP_SOURCE_EVENT_SUBSCRIBERS
