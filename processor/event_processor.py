"""Event processor for normalizing and validating calendar event data."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from processor.models import EVENT_STATUSES, OPTIONAL_EVENT_FIELDS, CalendarEvent

logger = logging.getLogger(__name__)

NaturalKey = Tuple[str, str, str, str]


class EventProcessor:
    """Processor for normalizing imported rows and filtering commit batches."""

    MAX_TITLE_LENGTH = 200

    DATE_FORMATS = [
        '%Y-%m-%d',      # ISO 8601
        '%m/%d/%Y',      # US format
        '%m-%d-%Y',      # US format with dashes
        '%B %d, %Y',     # Full month name
        '%b %d, %Y',     # Abbreviated month name
        '%d/%m/%Y',      # European format
        '%Y/%m/%d',      # Alternative ISO format
    ]

    def process_rows(
        self,
        rows: List[Dict[str, Any]],
        talent_id: str,
        timezone: str = 'UTC'
    ) -> List[CalendarEvent]:
        """
        Normalize raw import rows into calendar events.

        This is the dry-run step performed before a bulk commit; rows that
        fail validation are logged and dropped.

        Args:
            rows: Raw row dictionaries from a spreadsheet import
            talent_id: Talent that owns every event in the import
            timezone: IANA zone applied when a row does not carry one

        Returns:
            List of normalized CalendarEvent objects
        """
        events = []

        for index, row in enumerate(rows, start=1):
            try:
                event = self._process_single_row(row, talent_id, timezone)
                if event:
                    events.append(event)
            except Exception as e:
                logger.warning(f"Failed to process row {index}: {e}")
                continue

        logger.info(
            f"Processed {len(events)} valid events out of "
            f"{len(rows)} total rows"
        )
        return events

    def _process_single_row(
        self,
        row: Dict[str, Any],
        talent_id: str,
        timezone: str
    ) -> Optional[CalendarEvent]:
        """
        Process a single import row.

        Returns:
            CalendarEvent object or None if validation fails
        """
        title = (row.get('event_title') or '').strip()
        if not title:
            logger.warning("Row missing required field: event_title")
            return None

        start_date = self.normalize_date(row.get('start_date') or '')
        if not start_date:
            logger.warning(
                f"Invalid start date for event '{title}': {row.get('start_date')}"
            )
            return None

        # A missing end date means a single-day event
        end_date = start_date
        if row.get('end_date'):
            end_date = self.normalize_date(row['end_date'])
            if not end_date:
                logger.warning(
                    f"Invalid end date for event '{title}': {row.get('end_date')}"
                )
                return None

        if end_date < start_date:
            logger.warning(
                f"End date before start date for event '{title}': "
                f"{start_date} > {end_date}"
            )
            return None

        status = self.normalize_status(row.get('status') or 'booked')
        if not status:
            logger.warning(
                f"Unknown status for event '{title}': {row.get('status')}"
            )
            return None

        optional = {}
        for name in OPTIONAL_EVENT_FIELDS:
            value = row.get(name)
            if isinstance(value, str):
                value = value.strip() or None
            optional[name] = value

        return CalendarEvent(
            talent_id=talent_id,
            event_title=title[:self.MAX_TITLE_LENGTH],
            status=status,
            start_date=start_date,
            end_date=end_date,
            timezone=row.get('timezone') or timezone,
            all_day=True,
            **optional
        )

    def filter_for_commit(
        self,
        events: List[Dict[str, Any]],
        talent_id: str,
        year: int
    ) -> Tuple[List[CalendarEvent], List[str]]:
        """
        Keep only the events that belong to the talent/year being committed.

        Args:
            events: Event dictionaries from the commit request body
            talent_id: Talent the commit is scoped to
            year: Calendar year the commit is scoped to

        Returns:
            Tuple of (accepted events, rejection messages)
        """
        year_start = f"{year}-01-01"
        year_end = f"{year + 1}-01-01"
        accepted = []
        rejections = []

        for index, raw in enumerate(events, start=1):
            title = raw.get('event_title') if isinstance(raw, dict) else None
            label = f"Row {index} ({title})" if title else f"Row {index}"

            try:
                event = CalendarEvent.from_dict(raw)
            except (KeyError, TypeError, AttributeError) as e:
                rejections.append(f"{label}: missing or invalid field {e}")
                continue

            if event.talent_id != talent_id:
                rejections.append(f"{label}: talent_id does not match commit")
            elif not isinstance(event.start_date, str) or not isinstance(event.end_date, str):
                rejections.append(f"{label}: start_date and end_date must be YYYY-MM-DD strings")
            elif not (year_start <= event.start_date < year_end):
                rejections.append(f"{label}: start_date outside {year}")
            elif event.end_date < event.start_date:
                rejections.append(f"{label}: end_date before start_date")
            elif event.status not in EVENT_STATUSES:
                rejections.append(f"{label}: invalid status '{event.status}'")
            else:
                accepted.append(event)
                continue

            logger.info(f"Filtering out event: {rejections[-1]}")

        logger.info(
            f"Filtered to {len(accepted)} valid events for processing "
            f"({len(rejections)} rejected)"
        )
        return accepted, rejections

    def normalize_date(self, date_str: str) -> Optional[str]:
        """
        Normalize date to ISO 8601 format (YYYY-MM-DD).

        Args:
            date_str: Date string in various formats

        Returns:
            ISO 8601 formatted date string or None if parsing fails
        """
        if not isinstance(date_str, str):
            return None

        for fmt in self.DATE_FORMATS:
            try:
                date_obj = datetime.strptime(date_str.strip(), fmt)
                return date_obj.strftime('%Y-%m-%d')
            except ValueError:
                continue

        return None

    def normalize_status(self, status: str) -> Optional[str]:
        """
        Map a free-form status label onto one of the known statuses.

        "Not Available", "not-available" and "NOT_AVAILABLE" all map to
        "not_available"; "canceled" is accepted as "cancelled".
        """
        key = status.strip().lower().replace('-', '_').replace(' ', '_')
        if key == 'canceled':
            key = 'cancelled'
        return key if key in EVENT_STATUSES else None

    @staticmethod
    def natural_key(event: CalendarEvent) -> NaturalKey:
        """Unique key the backend upserts calendar events on."""
        return (event.talent_id, event.event_title, event.start_date, event.end_date)

    @staticmethod
    def events_differ(new_event: CalendarEvent, existing: CalendarEvent) -> bool:
        """
        Compare two events sharing a natural key.

        Compares every stored column; fields absent from the new event are
        treated as cleared.
        """
        return new_event.to_row() != existing.to_row()
