"""Data models for calendar events and bulk commits."""
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional


EVENT_STATUSES = (
    'booked',
    'hold',
    'tentative',
    'available',
    'cancelled',
    'not_available',
)

COMMIT_MODES = ('merge', 'replace')

OPTIONAL_EVENT_FIELDS = (
    'venue_name',
    'location_city',
    'location_state',
    'location_country',
    'address_line',
    'notes_public',
    'notes_internal',
    'source_file',
    'source_row_id',
)


@dataclass
class CalendarEvent:
    """All-day calendar event as exchanged with the backend."""
    talent_id: str
    event_title: str
    status: str
    start_date: str
    end_date: str
    timezone: str = 'UTC'
    all_day: bool = True
    venue_name: Optional[str] = None
    location_city: Optional[str] = None
    location_state: Optional[str] = None
    location_country: Optional[str] = None
    address_line: Optional[str] = None
    notes_public: Optional[str] = None
    notes_internal: Optional[str] = None
    source_file: Optional[str] = None
    source_row_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to the wire format.

        Optional fields are only included when set.

        Returns:
            Flat dictionary suitable for a JSON body
        """
        data = {
            'talent_id': self.talent_id,
            'event_title': self.event_title,
            'status': self.status,
            'all_day': self.all_day,
            'timezone': self.timezone,
            'start_date': self.start_date,
            'end_date': self.end_date,
        }
        for name in OPTIONAL_EVENT_FIELDS:
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data

    def to_row(self) -> Dict[str, Any]:
        """
        Convert to a full calendar_event row.

        Every optional column is present, unset ones as None, so rows in
        one bulk upsert share the same columns and cleared fields are
        written as null.
        """
        data = self.to_dict()
        for name in OPTIONAL_EVENT_FIELDS:
            data[name] = getattr(self, name)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CalendarEvent':
        """
        Build an event from a wire dictionary, ignoring unknown keys.

        Raises:
            KeyError: If a required field is missing
        """
        known = {f.name for f in fields(cls)}
        kwargs = {key: value for key, value in data.items() if key in known}
        for required in ('talent_id', 'event_title', 'status', 'start_date', 'end_date'):
            if required not in kwargs:
                raise KeyError(required)
        if kwargs.get('timezone') is None:
            kwargs.pop('timezone', None)
        if kwargs.get('all_day') is None:
            kwargs.pop('all_day', None)
        return cls(**kwargs)


@dataclass
class EditSnapshot:
    """Record state captured when an edit session begins."""
    id: str
    updated_at: Optional[str]
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CommitBatch:
    """One bulk commit request for a talent/year pair."""
    talent_id: str
    year: int
    mode: str
    events: List[CalendarEvent]

    def to_payload(self) -> Dict[str, Any]:
        """Request body for the commit function."""
        return {
            'talentId': self.talent_id,
            'year': self.year,
            'mode': self.mode,
            'events': [
                event.to_dict() if isinstance(event, CalendarEvent) else event
                for event in self.events
            ],
        }


@dataclass
class CommitCounts:
    """Per-record outcome counts of a commit."""
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.created + self.updated + self.skipped + self.failed


@dataclass
class CommitResult:
    """Result of a commit as reported by the commit function."""
    ok: bool
    counts: CommitCounts
    removed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'ok': self.ok,
            'counts': {
                'created': self.counts.created,
                'updated': self.counts.updated,
                'skipped': self.counts.skipped,
                'failed': self.counts.failed,
            },
            'removed': self.removed,
        }
        # errors key is omitted entirely when there were none
        if self.errors:
            result['errors'] = list(self.errors)
        return result


@dataclass
class SaveOutcome:
    """Result of a guarded save through the conflict detector."""
    saved: bool
    record: Optional[Dict[str, Any]] = None
    conflict: Optional[Dict[str, Any]] = None
