# ==============================================================================
# Site Analytics Domain Models
# ==============================================================================
"""
Pydantic models for raw interaction events, sessions, patterns and peer groups.

These models are used for:
- Validating events read from the event store
- Serializing sessions, patterns and peer groups to database records
- Type safety throughout the application

This module is part of the core domain layer and has no external dependencies
beyond Pydantic.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)

logger = logging.getLogger(__name__)


# ==============================================================================
# Raw Events
# ==============================================================================


class EventType(str, Enum):
    """Event types emitted by the tracking script."""

    PAGEVIEW = "pageview"
    CLICK = "click"
    FORM = "form"
    SCROLL = "scroll"
    TIME = "time"
    CONVERSION = "conversion"


class EventPayload(BaseModel):
    """Base class for typed views of RawEvent.data."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)


class PageviewData(EventPayload):
    """Payload of a pageview event. The page URL lives under `url` or `page`."""

    url: Optional[str] = None
    page: Optional[str] = None
    title: Optional[str] = None
    referrer: Optional[str] = None

    @property
    def resolved_url(self) -> str:
        """Page URL, falling back to `page`; empty string when neither is set."""
        return self.url or self.page or ""


class FormData(EventPayload):
    """Payload of a form interaction event (focus, blur, change, input, submit)."""

    form_id: Optional[str] = Field(None, validation_alias=AliasChoices("formId", "form_id"))
    field: Optional[str] = Field(None, validation_alias=AliasChoices("fieldName", "field", "name"))
    field_type: Optional[str] = Field(
        None, validation_alias=AliasChoices("fieldType", "field_type")
    )
    action: Optional[str] = Field(None, validation_alias=AliasChoices("eventType", "action"))

    @property
    def is_focus(self) -> bool:
        return (self.action or "").lower() == "focus"


class ClickData(EventPayload):
    """Payload of a click event."""

    selector: Optional[str] = None
    tag_name: Optional[str] = Field(None, validation_alias=AliasChoices("tagName", "tag_name"))
    text: Optional[str] = None
    href: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None


class ScrollData(EventPayload):
    """Payload of a scroll-depth event."""

    depth: Optional[float] = Field(None, validation_alias=AliasChoices("depth", "scrollDepth"))
    scroll_top: Optional[float] = Field(None, validation_alias=AliasChoices("scrollTop", "scroll_top"))


class TimeData(EventPayload):
    """Payload of a time-on-page event."""

    time_on_page: Optional[float] = Field(
        None, validation_alias=AliasChoices("timeOnPage", "time_on_page")
    )


class ConversionData(EventPayload):
    """Payload of a conversion event."""

    order_id: Optional[str] = Field(None, validation_alias=AliasChoices("orderId", "order_id"))
    value: Optional[float] = None
    currency: Optional[str] = None


# One payload shape per event type
EVENT_PAYLOAD_MODELS: dict["EventType", type[EventPayload]] = {
    EventType.PAGEVIEW: PageviewData,
    EventType.CLICK: ClickData,
    EventType.FORM: FormData,
    EventType.SCROLL: ScrollData,
    EventType.TIME: TimeData,
    EventType.CONVERSION: ConversionData,
}


class RawEvent(BaseModel):
    """
    Represents a single interaction event from the event store.

    Attributes:
        site_id: Site the event was captured on
        session_id: Visitor session identifier assigned by the tracking script
        event_type: Type of event (pageview, click, form, scroll, time, conversion)
        timestamp: Unix timestamp in milliseconds when the event occurred
        data: Free-form payload whose shape depends on event_type
        created_at: When the event was written to the store (nullable)
    """

    site_id: str = Field(..., alias="siteId", description="Site identifier")
    session_id: str = Field(..., alias="sessionId", description="Session identifier")
    event_type: EventType = Field(..., alias="eventType", description="Event type")
    timestamp: int = Field(..., description="Unix timestamp in milliseconds")
    data: dict[str, Any] = Field(default_factory=dict, description="Event payload")
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def event_time(self) -> datetime:
        """Convert timestamp to a UTC datetime."""
        return datetime.fromtimestamp(self.timestamp / 1000.0, tz=timezone.utc)

    def payload(self) -> EventPayload:
        """
        Typed view of `data` for this event's type.

        A payload that does not fit its model is treated as empty rather than
        failing the whole aggregation run.
        """
        model = EVENT_PAYLOAD_MODELS[self.event_type]
        try:
            return model.model_validate(self.data or {})
        except ValidationError as e:
            logger.debug(
                "Malformed %s payload in session %s: %s",
                self.event_type.value,
                self.session_id,
                e,
            )
            return model()

    @classmethod
    def from_tracking_payload(cls, payload: dict) -> "RawEvent":
        """
        Build an event from the ingestion contract shape.

        Expected structure:
            {"siteId": str, "sessionId": str,
             "event": {"type": str, "timestamp": int, "data": dict}}
        """
        event = payload["event"]
        return cls(
            siteId=payload["siteId"],
            sessionId=payload["sessionId"],
            eventType=event["type"],
            timestamp=event["timestamp"],
            data=event.get("data") or {},
        )

    def to_db_record(self) -> dict:
        """Convert event to database record format."""
        return {
            "site_id": self.site_id,
            "session_id": self.session_id,
            "event_type": self.event_type.value,
            "event_time": self.event_time,
            "data": self.data,
        }


# ==============================================================================
# Sessions
# ==============================================================================


class Session(BaseModel):
    """
    A visitor session reconstructed from its raw events.

    Sessions are keyed by session_id and written only by the session
    aggregation job.

    Attributes:
        site_id: Site identifier
        session_id: Unique session identifier
        entry_page: First pageview URL ("" when the session has no pageviews)
        exit_page: Last pageview URL (None when the session has no pageviews)
        duration_seconds: Seconds between first and last event, None if equal
        page_count: Number of pageview events
        bounced: True when the session has exactly one pageview
        converted: True when the session contains a conversion event
        journey_path: Ordered pageview URLs, duplicates kept
        created_at: Creation time of the first event
    """

    site_id: str = Field(..., description="Site identifier")
    session_id: str = Field(..., description="Session identifier")
    entry_page: str = Field(default="", description="First page of the journey")
    exit_page: Optional[str] = Field(default=None, description="Last page of the journey")
    duration_seconds: Optional[int] = Field(default=None, ge=0, description="Duration in seconds")
    page_count: int = Field(default=0, ge=0, description="Number of pageviews")
    bounced: bool = Field(default=False, description="Single-pageview session")
    converted: bool = Field(default=False, description="Session contains a conversion")
    journey_path: list[str] = Field(default_factory=list, description="Ordered page URLs")
    created_at: datetime = Field(..., description="Session creation time")

    @model_validator(mode="after")
    def _check_bounce(self) -> "Session":
        if self.bounced != (self.page_count == 1):
            raise ValueError("bounced must be True exactly when page_count == 1")
        return self

    def to_db_record(self) -> dict:
        """Convert session to database record format."""
        return {
            "site_id": self.site_id,
            "session_id": self.session_id,
            "entry_page": self.entry_page,
            "exit_page": self.exit_page,
            "duration_seconds": self.duration_seconds,
            "page_count": self.page_count,
            "bounced": self.bounced,
            "converted": self.converted,
            "journey_path": list(self.journey_path),
            "created_at": self.created_at,
        }


# ==============================================================================
# Patterns
# ==============================================================================


class PatternType(str, Enum):
    """Behavioral pattern types."""

    ABANDONMENT = "ABANDONMENT"
    HESITATION = "HESITATION"
    LOW_ENGAGEMENT = "LOW_ENGAGEMENT"


class PatternMetadata(BaseModel):
    """
    Base class for type-specific pattern metadata.

    Field names are serialized in camelCase; downstream recommendation
    templates address them as {{dropOffRate}}, {{reEntryRate}} and so on.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    affected_sessions: int = Field(..., alias="affectedSessions", ge=0)
    sample_size: int = Field(..., alias="sampleSize", ge=0)

    def to_json(self) -> dict:
        """Serialize with camelCase keys."""
        return self.model_dump(by_alias=True)


class AbandonmentMetadata(PatternMetadata):
    stage: str
    next_stage: Optional[str] = Field(None, alias="nextStage")
    drop_off_rate: float = Field(..., alias="dropOffRate")


class HesitationMetadata(PatternMetadata):
    field: str
    re_entry_rate: float = Field(..., alias="reEntryRate")
    avg_re_entries: float = Field(..., alias="avgReEntries")


class LowEngagementMetadata(PatternMetadata):
    page: str
    time_on_page: float = Field(..., alias="timeOnPage")
    site_average: float = Field(..., alias="siteAverage")
    engagement_gap: float = Field(..., alias="engagementGap")


AnyPatternMetadata = Union[AbandonmentMetadata, HesitationMetadata, LowEngagementMetadata]

PATTERN_METADATA_MODELS: dict[PatternType, type[PatternMetadata]] = {
    PatternType.ABANDONMENT: AbandonmentMetadata,
    PatternType.HESITATION: HesitationMetadata,
    PatternType.LOW_ENGAGEMENT: LowEngagementMetadata,
}


class Pattern(BaseModel):
    """
    A detected behavioral pattern for a site.

    Patterns are append-only: created by the pattern detection job and never
    modified afterwards.
    """

    model_config = ConfigDict(frozen=True)

    site_id: str
    pattern_type: PatternType
    description: str
    severity: float = Field(..., ge=0.0, le=1.0)
    session_count: int = Field(..., ge=0)
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    metadata: AnyPatternMetadata
    detected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="before")
    @classmethod
    def _select_metadata_model(cls, values: Any) -> Any:
        # Stored metadata comes back as a plain dict; pick its shape from the tag
        if isinstance(values, dict) and isinstance(values.get("metadata"), dict):
            model = PATTERN_METADATA_MODELS[PatternType(values["pattern_type"])]
            values = {**values, "metadata": model.model_validate(values["metadata"])}
        return values

    @model_validator(mode="after")
    def _check_metadata_type(self) -> "Pattern":
        expected = PATTERN_METADATA_MODELS[self.pattern_type]
        if not isinstance(self.metadata, expected):
            raise ValueError(
                f"{self.pattern_type.value} pattern requires {expected.__name__} metadata"
            )
        return self

    def to_db_record(self) -> dict:
        """Convert pattern to database record format."""
        return {
            "site_id": self.site_id,
            "pattern_type": self.pattern_type.value,
            "description": self.description,
            "severity": self.severity,
            "session_count": self.session_count,
            "confidence_score": self.confidence_score,
            "metadata": self.metadata.to_json(),
            "detected_at": self.detected_at,
        }


# ==============================================================================
# Businesses and Peer Groups
# ==============================================================================


# Ordered revenue bands; adjacency drives revenue matching
REVENUE_TIERS: tuple[str, ...] = (
    "$0-100k",
    "$100k-500k",
    "$500k-1M",
    "$1M-5M",
    "$5M-10M",
    "$10M-50M",
    "$50M+",
)


class BusinessProfile(BaseModel):
    """
    Business profile record owned by the onboarding flow.

    Read-only to this package except for peer_group_id, which the peer group
    service repoints after every calculation.
    """

    id: str
    industry: str
    revenue_range: str
    product_types: list[str] = Field(default_factory=list)
    platform: str
    site_id: Optional[str] = None
    peer_group_id: Optional[str] = None


class MatchTier(str, Enum):
    """Peer matching tiers, strictest first."""

    STRICT = "strict"
    RELAXED = "relaxed"
    BROAD = "broad"
    FALLBACK = "fallback"


class MatchCriteria(BaseModel):
    """Tier that produced a peer group plus the seed parameters it matched on."""

    tier: MatchTier
    industry: str
    revenue_range: str
    product_types: list[str] = Field(default_factory=list)
    platform: str

    def to_json(self) -> dict:
        return self.model_dump(mode="json")


class SimilarityScore(BaseModel):
    """Pairwise similarity between a seed business and a candidate."""

    business_id: str
    score: float = Field(..., ge=0.0, le=1.0)
    industry_match: bool
    revenue_match: bool
    product_types_similarity: float
    platform_match: bool


class PeerGroup(BaseModel):
    """
    A peer group snapshot.

    business_ids[0] is the seed business, followed by its matches in
    descending similarity order. A new group is created on every calculation.
    """

    id: str
    criteria: MatchCriteria
    business_ids: list[str]
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def seed_business_id(self) -> str:
        return self.business_ids[0]

    @property
    def peer_ids(self) -> list[str]:
        """Member ids excluding the seed."""
        return self.business_ids[1:]

    def to_db_record(self) -> dict:
        """Convert peer group to database record format."""
        return {
            "id": self.id,
            "criteria": self.criteria.to_json(),
            "business_ids": list(self.business_ids),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
