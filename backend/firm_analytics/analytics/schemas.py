from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, ValidatorFunctionWrapHandler, field_validator
from pydantic.alias_generators import to_camel

from firm_analytics.common.dates import DateLike, normalize_date

_ZERO = Decimal(0)


# Inputs
class TimeEntry(BaseModel):
    """One recorded unit of work, as exported by the time-tracking store."""

    person_id: str = Field(validation_alias=AliasChoices("personId", "person_id", "userId"))
    billable_hours: Decimal = Field(default=_ZERO, ge=0)
    ops_hours: Decimal = Field(default=_ZERO, ge=0)
    billing_category: str = "Other"
    ops_category: str | None = None
    client: str = "Unknown"
    matter: str | None = None
    earnings: Decimal = Field(default=_ZERO, ge=0)
    notes: str = ""
    entry_date: DateLike = Field(default=None, validation_alias=AliasChoices("date", "entry_date", "entryDate"))
    year: int | None = None
    month: str | int | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    @field_validator("person_id", mode="before")
    @classmethod
    def _person_id_as_text(cls, value: Any) -> Any:
        if isinstance(value, int | float):
            return str(value)
        return value

    @field_validator("billable_hours", "ops_hours", "earnings", mode="before")
    @classmethod
    def _missing_amount_is_zero(cls, value: Any) -> Any:
        return _ZERO if value is None or value == "" else value

    @field_validator("billing_category", mode="before")
    @classmethod
    def _default_category(cls, value: Any) -> Any:
        return value if value and str(value).strip() else "Other"

    @field_validator("client", mode="before")
    @classmethod
    def _default_client(cls, value: Any) -> Any:
        return value if value and str(value).strip() else "Unknown"

    @field_validator("notes", mode="before")
    @classmethod
    def _default_notes(cls, value: Any) -> Any:
        return value or ""

    @field_validator("entry_date", mode="wrap")
    @classmethod
    def _unreadable_date_is_missing(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> Any:
        # leaves year/month to supply the date
        try:
            return handler(value)
        except ValidationError:
            return None

    @field_validator("year", mode="before")
    @classmethod
    def _blank_year(cls, value: Any) -> Any:
        return None if value == "" else value

    def resolve_date(self, tz: ZoneInfo) -> datetime | None:
        return normalize_date(self.entry_date, tz, year=self.year, month=self.month)


class MonthlyTarget(BaseModel):
    billable_target: Decimal | None = Field(default=None, ge=0)
    ops_target: Decimal | None = Field(default=None, ge=0)
    total_target: Decimal | None = Field(default=None, ge=0)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class VisibilityRule(BaseModel):
    person_name: str
    hide_after: date

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class DateRangePreset(str, Enum):
    all_time = "all-time"
    current_week = "current-week"
    current_month = "current-month"
    last_month = "last-month"
    trailing_60 = "trailing-60"
    custom = "custom"


class ActivityPeriod(str, Enum):
    two_weeks = "2-weeks"
    one_month = "1-month"
    two_months = "2-months"
    three_months = "3-months"
    six_months = "6-months"
    nine_months = "9-months"
    twelve_months = "12-months"
    eighteen_months = "18-months"
    twenty_four_months = "24-months"
    custom = "custom"
    all_time = "all-time"


class DateRangeSpec(BaseModel):
    preset: DateRangePreset = DateRangePreset.current_month
    start: date | None = None
    end: date | None = None

    model_config = {"frozen": True}


class EngineConfig(BaseModel):
    """Immutable configuration passed into every engine call."""

    reference_timezone: str = "America/Los_Angeles"
    default_billable_target: Decimal = Field(default=Decimal(100), ge=0)
    default_ops_target: Decimal = Field(default=Decimal(50), ge=0)
    default_total_target: Decimal = Field(default=Decimal(150), ge=0)
    sample_limit: int = Field(default=50, ge=0)
    top_category_limit: int = Field(default=5, ge=0)
    visibility_rules: tuple[VisibilityRule, ...] = ()

    model_config = {"frozen": True}

    @field_validator("reference_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.reference_timezone)


# Resolved period
class ResolvedPeriod(BaseModel):
    preset: str
    start_date: datetime | None
    end_date: datetime
    now: datetime
    current_month_key: str
    is_current_month_in_progress: bool
    label: str

    model_config = {"frozen": True}

    def contains(self, moment: datetime) -> bool:
        if self.start_date is not None and moment < self.start_date:
            return False
        return moment <= self.end_date


# Outputs
class UtilizationBand(str, Enum):
    on_target = "on target"
    near_target = "near target"
    off_target = "off target"


class UtilizationResult(BaseModel):
    overall: int
    billable: int
    ops: int
    band: UtilizationBand


class EntrySample(BaseModel):
    date: datetime
    attorney: str
    client: str
    category: str
    matter: str | None = None
    hours: float
    billable_hours: float
    ops_hours: float
    earnings: float
    notes: str


class PersonBreakdown(BaseModel):
    count: int
    hours: float
    earnings: float


class CategoryBreakdown(BaseModel):
    count: int
    hours: float


class AttorneyRollup(BaseModel):
    name: str
    billable_hours: float
    ops_hours: float
    total_hours: float
    earnings: float
    gross_billables: float
    entry_count: int
    categories: dict[str, float]
    clients: dict[str, float]
    top_categories: list[str]
    active_months: list[str]
    has_activity: bool
    billable_target: float
    ops_target: float
    total_target: float
    utilization: UtilizationResult
    recent_entries: list[EntrySample]


class ClientRollup(BaseModel):
    name: str
    billable_hours: float
    ops_hours: float
    total_hours: float
    earnings: float
    entry_count: int
    unique_categories: int
    avg_hours_per_entry: float
    last_activity: date | None
    percentage: int
    by_person: dict[str, PersonBreakdown]
    by_category: dict[str, CategoryBreakdown]
    entries: list[EntrySample]


class CategoryRollup(BaseModel):
    category: str
    total_hours: float
    total_earnings: float
    count: int
    avg_hours: float
    avg_earnings: float
    percentage: int
    by_person: dict[str, PersonBreakdown]
    entries: list[EntrySample]


class OpsCategoryRollup(BaseModel):
    category: str
    hours: float
    count: int
    percentage: int
    by_person: dict[str, PersonBreakdown]
    entries: list[EntrySample]


class MatterRollup(BaseModel):
    matter: str
    clients: list[str]
    total_hours: float
    total_earnings: float
    count: int
    avg_hours: float
    percentage: int
    by_person: dict[str, PersonBreakdown]
    by_category: dict[str, CategoryBreakdown]
    entries: list[EntrySample]


class FirmTotals(BaseModel):
    billable_hours: float
    ops_hours: float
    total_hours: float
    earnings: float
    gross_billables: float
    billable_target: float
    ops_target: float
    total_target: float
    avg_utilization: int
    people_count: int


class AnalyticsReport(BaseModel):
    period: ResolvedPeriod
    attorney_rollups: list[AttorneyRollup]
    firm_totals: FirmTotals
    client_rollups: list[ClientRollup]
    category_rollups: list[CategoryRollup]
    ops_category_rollups: list[OpsCategoryRollup]
    matter_rollups: list[MatterRollup]
    utilization_by_person: dict[str, UtilizationResult]
    selectable_people: list[str]
    entry_count: int
    skipped_entry_count: int
    is_empty: bool


class PersonDetail(BaseModel):
    person: str
    is_hidden: bool
    period: ResolvedPeriod
    rollup: AttorneyRollup | None
    client_rollups: list[ClientRollup]
    category_rollups: list[CategoryRollup]
    ops_category_rollups: list[OpsCategoryRollup]
    matter_rollups: list[MatterRollup]


# Requests
class ReportRequest(BaseModel):
    entries: list[dict[str, Any]] = []
    targets: dict[str, dict[str, MonthlyTarget]] = {}
    period: DateRangeSpec = DateRangeSpec()
    person_names: dict[str, str] = {}
    people: list[str] = []
    person_filter: list[str] = []
    rates: dict[str, dict[str, Decimal]] = {}
    now: datetime | None = None


class ClientActivityRequest(BaseModel):
    entries: list[dict[str, Any]] = []
    person_names: dict[str, str] = {}
    period: ActivityPeriod = ActivityPeriod.twelve_months
    start: date | None = None
    end: date | None = None
    now: datetime | None = None


class PeriodRequest(BaseModel):
    period: DateRangeSpec = DateRangeSpec()
    now: datetime | None = None
