from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)

    def as_latlng(self) -> str:
        return f"{self.latitude},{self.longitude}"


class MatchLevel(StrEnum):
    """How specific the query that produced a geocoding hit was. Most specific first."""

    EXACT = "exact"
    FULL_ADDRESS = "full_address"
    DISTRICT_PROVINCE = "district_province"
    PROVINCE_ONLY = "province_only"
    PARTIAL = "partial"
    UNKNOWN = "unknown"


class AttemptOutcome(StrEnum):
    SUCCESS = "success"
    EMPTY = "empty"
    SKIPPED = "skipped"
    FAILED = "failed"
    QUOTA_EXCEEDED = "quota_exceeded"


class ProviderAttempt(BaseModel):
    provider: str
    outcome: AttemptOutcome
    detail: str | None = None


# --- Geocoding ---


class GeocodeCandidate(BaseModel):
    point: GeoPoint
    formatted_address: str
    confidence: float = Field(ge=0.0, le=1.0)
    source_query: str
    query_index: int = 0
    match_level: MatchLevel = MatchLevel.UNKNOWN
    provider_name: str
    metered: bool = False


class GeocodeResult(BaseModel):
    point: GeoPoint
    formatted_address: str
    confidence: float
    match_level: MatchLevel
    provider_name: str
    source_query: str
    score: float
    attempts: list[ProviderAttempt] = []


class ReverseGeocodeResult(BaseModel):
    point: GeoPoint
    formatted_address: str
    components: dict[str, str] = {}
    provider_name: str


# --- Routing ---


class RouteLeg(BaseModel):
    distance_km: float = Field(ge=0.0)
    duration_seconds: float | None = Field(default=None, ge=0.0)


class MatrixElement(BaseModel):
    status: str
    leg: RouteLeg | None = None


class DistanceResult(BaseModel):
    distance_km: float = Field(ge=0.0)
    duration_seconds: float | None = None
    provider_name: str
    warning: str | None = None
    attempts: list[ProviderAttempt] = []


# --- Quota ---


class QuotaOperation(StrEnum):
    GEOCODING = "geocoding"
    DISTANCE = "distance"


class QuotaPeriod(BaseModel):
    period_key: str
    counters: dict[QuotaOperation, int] = Field(
        default_factory=lambda: {op: 0 for op in QuotaOperation}
    )
    total_count: int = 0
    hard_limit: int
    warning_threshold: int
    exceeded: bool = False

    @property
    def is_exceeded(self) -> bool:
        return self.exceeded or self.total_count >= self.hard_limit

    @property
    def near_limit(self) -> bool:
        return self.total_count >= self.warning_threshold

    @property
    def remaining(self) -> int:
        return max(0, self.hard_limit - self.total_count)


class QuotaStatus(BaseModel):
    period: str
    usage: dict[QuotaOperation, int]
    total: int
    hard_limit: int
    warning_threshold: int
    remaining: int
    exceeded: bool
    near_limit: bool
    percentage_used: int

    @classmethod
    def from_period(cls, period: QuotaPeriod) -> "QuotaStatus":
        percentage = round(period.total_count / period.hard_limit * 100) if period.hard_limit else 100
        return cls(
            period=period.period_key,
            usage=dict(period.counters),
            total=period.total_count,
            hard_limit=period.hard_limit,
            warning_threshold=period.warning_threshold,
            remaining=period.remaining,
            exceeded=period.is_exceeded,
            near_limit=period.near_limit,
            percentage_used=percentage,
        )


# --- Batch ---


class BatchItemStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"
    NOT_FOUND = "not_found"
    NO_COORDINATES = "no_coordinates"


class BatchGeocodeItem(BaseModel):
    code: str
    address: str | None = None
    entity_name: str | None = None


class BatchGeocodeItemResult(BaseModel):
    code: str
    status: BatchItemStatus
    result: GeocodeResult | None = None
    error: str | None = None


class BatchDistanceItem(BaseModel):
    id: str
    destination: GeoPoint | None = None


class BatchDistanceItemResult(BaseModel):
    id: str
    status: BatchItemStatus
    distance_km: float | None = None
    duration_seconds: float | None = None
    provider_name: str | None = None
    warning: str | None = None
    error: str | None = None


class BatchSummary(BaseModel):
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    not_found: int = 0
    no_coordinates: int = 0

    @classmethod
    def tally(cls, statuses: list[BatchItemStatus]) -> "BatchSummary":
        return cls(
            total=len(statuses),
            succeeded=statuses.count(BatchItemStatus.SUCCESS),
            failed=statuses.count(BatchItemStatus.FAILED),
            not_found=statuses.count(BatchItemStatus.NOT_FOUND),
            no_coordinates=statuses.count(BatchItemStatus.NO_COORDINATES),
        )


class BatchGeocodeReport(BaseModel):
    summary: BatchSummary
    results: list[BatchGeocodeItemResult]


class BatchDistanceReport(BaseModel):
    summary: BatchSummary
    results: list[BatchDistanceItemResult]


class CustomerMileageResult(BaseModel):
    code: str
    name: str | None = None
    status: BatchItemStatus
    distance_km: float | None = None
    previous_distance_km: float | None = None
    duration_minutes: int | None = None
    provider_name: str | None = None
    warning: str | None = None
    error: str | None = None


class CustomerMileageReport(BaseModel):
    summary: BatchSummary
    results: list[CustomerMileageResult]
