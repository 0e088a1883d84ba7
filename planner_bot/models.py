"""
Data models for the weekly planner import.

This module defines the data structures used throughout the application:
schedule items, frame-level extraction results, navigation step results,
per-source import outcomes and the weekly capacity summary.
"""

import uuid
from dataclasses import dataclass, field, replace, asdict
from typing import Any, Dict, List, Optional


# ── Weekly grid ───────────────────────────────────────

WEEKDAYS = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday']

WORK_START_HOUR = 8
WORK_END_HOUR = 17
SLOT_MINUTES = 30
WEEKLY_CAPACITY_MINUTES = 40 * 60

# ── Item kinds ────────────────────────────────────────

KIND_SETUP_ULTIMATE = 'setup-ultimate'
KIND_SETUP_PREMIUM = 'setup-premium'
KIND_SETUP_STANDARD = 'setup-standard'
KIND_REVISION = 'revision'
KIND_LAUNCH = 'launch'
KIND_MEETING = 'meeting'
KIND_BUFFER = 'buffer'
KIND_BREAK = 'break'

ITEM_KINDS = [
    KIND_SETUP_ULTIMATE,
    KIND_SETUP_PREMIUM,
    KIND_SETUP_STANDARD,
    KIND_REVISION,
    KIND_LAUNCH,
    KIND_MEETING,
    KIND_BUFFER,
    KIND_BREAK,
]

# ── Placement markers ─────────────────────────────────

PLACEMENT_FIXED = 'fixed'          # time came from the source (or a default)
PLACEMENT_AUTO = 'auto'            # placed into a free gap by the scheduler
PLACEMENT_RELOCATED = 'relocated'  # moved off a conflicting slot
PLACEMENT_OVERFLOW = 'overflow'    # no gap found, allowed to overlap
PLACEMENT_PENDING = 'pending'      # placeholder slot, waiting for auto-placement

# ── Source outcomes ───────────────────────────────────

STATUS_SUCCESS = 'success'
STATUS_NEEDS_LOGIN = 'needs-login'
STATUS_ERROR = 'error'


class ErrorKind:
    """Classification of per-source failures."""
    NEEDS_LOGIN = 'needs-login'
    NOT_READY_TIMEOUT = 'not-ready-timeout'
    NAVIGATION_FAILED = 'navigation-failed'
    NO_DATA_FOUND = 'no-data-found'
    EXTRACTION_EXCEPTION = 'extraction-exception'
    TAB_OPEN_FAILED = 'tab-open-failed'
    IMPORT_TIMEOUT = 'import-timeout'


def generate_id() -> str:
    """Generate a unique schedule item ID."""
    return f"item-{uuid.uuid4().hex[:12]}"


@dataclass
class ScheduleItem:
    """
    A single block on the weekly planner.

    Attributes:
        kind: One of ITEM_KINDS
        title: Display title (e.g. "Acme County – Ultimate Setup")
        duration_minutes: Positive multiple of SLOT_MINUTES
        day: Weekday name (lowercase, monday..friday)
        start_hour: Start in 24h decimal hours, e.g. 8, 8.5, 13
        source_id: Key of the originating raw record, if any
        locked: True when the time is fixed externally (real meetings)
        source: Source key that produced the item (None for defaults)
        placement: How the current time slot was decided
        item_id: Unique item identifier
    """
    kind: str
    title: str
    duration_minutes: int
    day: str
    start_hour: float
    source_id: Optional[str] = None
    locked: bool = False
    source: Optional[str] = None
    placement: str = PLACEMENT_FIXED
    item_id: str = field(default_factory=generate_id)

    def __post_init__(self):
        """Validate the item against the weekly grid."""
        if self.kind not in ITEM_KINDS:
            raise ValueError(f"Unknown item kind: {self.kind!r}")
        if self.day not in WEEKDAYS:
            raise ValueError(f"Invalid day: {self.day!r} (must be one of {', '.join(WEEKDAYS)})")
        if self.duration_minutes <= 0 or self.duration_minutes % SLOT_MINUTES != 0:
            raise ValueError(
                f"Duration must be a positive multiple of {SLOT_MINUTES} minutes, "
                f"got: {self.duration_minutes}"
            )
        if not (WORK_START_HOUR <= self.start_hour < WORK_END_HOUR):
            raise ValueError(
                f"Start hour {self.start_hour} outside working hours "
                f"[{WORK_START_HOUR}, {WORK_END_HOUR})"
            )

    @property
    def end_hour(self) -> float:
        return self.start_hour + self.duration_minutes / 60

    @property
    def is_setup(self) -> bool:
        return self.kind.startswith('setup-')

    @property
    def is_overflow(self) -> bool:
        return self.placement == PLACEMENT_OVERFLOW

    def overlaps(self, other: 'ScheduleItem') -> bool:
        """Check whether two items share any time on the same day."""
        if self.day != other.day:
            return False
        return self.start_hour < other.end_hour and other.start_hour < self.end_hour

    def moved_to(self, day: str, start_hour: float, placement: str) -> 'ScheduleItem':
        """Return a copy of this item at a new slot."""
        return replace(self, day=day, start_hour=start_hour, placement=placement)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ExtractionResult:
    """
    Result of running a page extractor in one frame (or the aggregate).

    Attributes:
        needs_login: The frame shows a login wall
        data: Raw records (dicts)
        error: Error message if extraction failed
        diag: Free-form diagnostics (url, counts, strategy name)
    """
    needs_login: bool = False
    data: List[Any] = field(default_factory=list)
    error: Optional[str] = None
    diag: Any = field(default_factory=dict)

    @classmethod
    def from_frame(cls, value: Any) -> 'ExtractionResult':
        """Build from the plain dict returned by a frame-side extractor."""
        if not isinstance(value, dict):
            return cls(error=f"Unexpected extractor result: {type(value).__name__}")
        return cls(
            needs_login=bool(value.get('needs_login')),
            data=list(value.get('data') or []),
            error=value.get('error'),
            diag=value.get('diag') or {},
        )

    @property
    def has_data(self) -> bool:
        return len(self.data) > 0


@dataclass
class FrameResult:
    """
    Return value of a frame-side function for one frame.

    Attributes:
        frame_url: URL of the frame the function ran in
        value: Serializable value the function returned
        error: Set when the call itself failed (detached frame, crash)
    """
    frame_url: str
    value: Any = None
    error: Optional[str] = None


@dataclass
class StepResult:
    """Outcome of one navigation click-step."""
    clicked: bool
    method: str = ''
    error: Optional[str] = None
    diag: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_frame(cls, value: Any) -> 'StepResult':
        if not isinstance(value, dict):
            return cls(clicked=False, error=f"Unexpected step result: {type(value).__name__}")
        return cls(
            clicked=bool(value.get('clicked')),
            method=value.get('method') or '',
            error=value.get('error'),
            diag=value.get('diag') or {},
        )


@dataclass
class NavigationOutcome:
    """
    Result of running a whole navigation sequence.

    Attributes:
        succeeded: Every step clicked
        steps: Results of the steps that ran (a failed step ends the sequence)
        failed_step: 1-based index of the step that failed
    """
    succeeded: bool
    steps: List[StepResult] = field(default_factory=list)
    failed_step: Optional[int] = None


@dataclass
class SourceResult:
    """
    Outcome of importing a single source.

    Exactly one of the three statuses applies: success (with data),
    needs-login, or error (with message and diagnostics).
    """
    source: str
    status: str
    data: List[Any] = field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[str] = None
    diag: Any = None

    @classmethod
    def success(cls, source: str, data: List[Any], diag: Any = None) -> 'SourceResult':
        return cls(source=source, status=STATUS_SUCCESS, data=list(data), diag=diag)

    @classmethod
    def needs_login(cls, source: str, diag: Any = None) -> 'SourceResult':
        return cls(
            source=source,
            status=STATUS_NEEDS_LOGIN,
            error="Login required: log in to the source in the opened tab, then retry",
            error_kind=ErrorKind.NEEDS_LOGIN,
            diag=diag,
        )

    @classmethod
    def failure(cls, source: str, error: str, error_kind: str, diag: Any = None) -> 'SourceResult':
        return cls(source=source, status=STATUS_ERROR, error=error, error_kind=error_kind, diag=diag)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        result = {'source': self.source, 'status': self.status, 'data': self.data}
        if self.error is not None:
            result['error'] = self.error
        if self.error_kind is not None:
            result['error_kind'] = self.error_kind
        if self.diag is not None:
            result['diag'] = self.diag
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SourceResult':
        return cls(
            source=data['source'],
            status=data['status'],
            data=list(data.get('data') or []),
            error=data.get('error'),
            error_kind=data.get('error_kind'),
            diag=data.get('diag'),
        )


@dataclass
class ImportResult:
    """Combined import result keyed by source name."""
    results: Dict[str, SourceResult] = field(default_factory=dict)

    def __getitem__(self, source: str) -> SourceResult:
        return self.results[source]

    def __contains__(self, source: str) -> bool:
        return source in self.results

    def succeeded(self) -> List[str]:
        return [name for name, r in self.results.items() if r.ok]

    def data_for(self, source: str) -> List[Any]:
        result = self.results.get(source)
        return result.data if result is not None and result.ok else []

    def to_dict(self) -> Dict[str, Any]:
        return {name: r.to_dict() for name, r in self.results.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ImportResult':
        return cls(results={name: SourceResult.from_dict(r) for name, r in data.items()})

    def format_summary(self) -> str:
        """
        Format the per-source outcomes as a human-readable string.

        Returns:
            Formatted summary text
        """
        lines = [
            "\n" + "=" * 60,
            "IMPORT SUMMARY",
            "=" * 60,
        ]
        for name, r in self.results.items():
            if r.ok:
                lines.append(f"  {name}: {r.status} ({len(r.data)} record(s))")
            else:
                lines.append(f"  {name}: {r.status} [{r.error_kind}] {r.error}")
        lines.append(f"\nSucceeded: {len(self.succeeded())} of {len(self.results)} source(s)")
        lines.append("=" * 60 + "\n")
        return "\n".join(lines)


@dataclass
class CapacitySummary:
    """
    Weekly capacity accounting (reported, never enforced).

    Attributes:
        total_available_minutes: Fixed weekly capacity (2400)
        total_scheduled_minutes: Sum of all item durations
        total_break_minutes: Minutes of break items
        total_buffer_minutes: Minutes of buffer items
        total_work_minutes: Scheduled minus breaks and buffers
        remaining_minutes: Capacity minus scheduled (negative when over)
        utilization_percent: Scheduled / capacity, rounded
        status: 'under', 'balanced' or 'over'
    """
    total_available_minutes: int
    total_scheduled_minutes: int
    total_break_minutes: int
    total_buffer_minutes: int
    total_work_minutes: int
    remaining_minutes: int
    utilization_percent: int
    status: str

    def format_summary(self) -> str:
        lines = [
            "\n" + "=" * 60,
            "WEEKLY CAPACITY",
            "=" * 60,
            f"  Scheduled: {self.total_scheduled_minutes / 60:.1f}h of "
            f"{self.total_available_minutes / 60:.0f}h ({self.utilization_percent}%)",
            f"  Work: {self.total_work_minutes / 60:.1f}h",
            f"  Breaks: {self.total_break_minutes / 60:.1f}h",
            f"  Buffers: {self.total_buffer_minutes / 60:.1f}h",
            f"  Remaining: {self.remaining_minutes / 60:.1f}h",
            f"  Status: {self.status}",
            "=" * 60 + "\n",
        ]
        return "\n".join(lines)
