"""Optimistic concurrency checks for record edits."""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

RESOLUTION_ACTIONS = ('reload', 'overwrite')

TIMESTAMP_PATTERN = re.compile(
    r'(?P<base>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(?::\d{2})?)'
    r'(?:\.(?P<fraction>\d+))?'
    r'(?P<offset>Z|[+-]\d{2}(?::?\d{2})?)?'
)

CONFLICT_MESSAGES = {
    'en': {
        'title': 'Concurrency Conflict',
        'description': (
            'This event was updated elsewhere. Reload to continue or '
            'overwrite with your changes.'
        ),
    },
    'es': {
        'title': 'Conflicto de Concurrencia',
        'description': (
            'Este evento fue actualizado en otro lugar. Recarga para '
            'continuar o sobrescribe con tus cambios.'
        ),
    },
}

Notifier = Callable[[str, str, str], None]


def safe_locale(language: Optional[str]) -> str:
    """Return 'es' for Spanish, 'en' for anything else."""
    return 'es' if language == 'es' else 'en'


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO 8601 timestamp into an aware datetime.

    Accepts what the backend emits for timestamptz columns: a trailing 'Z',
    offsets written as '+00', '+0000' or '+00:00', and fractional seconds
    of any length (truncated to microseconds). Naive values are taken as
    UTC.

    Raises:
        ValueError: If the value is not ISO 8601
    """
    text = value.strip()
    match = TIMESTAMP_PATTERN.fullmatch(text)
    if match:
        text = match.group('base')
        fraction = match.group('fraction')
        if fraction:
            text += '.' + fraction[:6].ljust(6, '0')
        offset = match.group('offset')
        if offset == 'Z':
            text += '+00:00'
        elif offset:
            digits = offset[1:].replace(':', '')
            text += f"{offset[0]}{digits[:2]}:{digits[2:4] or '00'}"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def check_concurrency(original: Dict[str, Any], current: Dict[str, Any]) -> bool:
    """
    Decide whether an edit based on `original` may overwrite `current`.

    Args:
        original: Snapshot taken at edit start, carrying updatedAt
            (updated_at is accepted too)
        current: Record as currently stored, carrying updated_at

    Returns:
        True when the write is safe: either timestamp is missing, or the
        snapshot is at least as new as the stored record. An unparseable
        timestamp counts as a conflict.
    """
    original_at = original.get('updatedAt') or original.get('updated_at')
    current_at = current.get('updated_at')
    if not original_at or not current_at:
        return True

    try:
        return parse_timestamp(original_at) >= parse_timestamp(current_at)
    except (TypeError, ValueError) as e:
        logger.warning(f"Unparseable updated_at, treating as conflict: {e}")
        return False


def log_notifier(title: str, description: str, variant: str) -> None:
    logger.warning(f"{title}: {description}", extra={'variant': variant})


class OptimisticConcurrency:
    """Conflict state for one edit screen."""

    def __init__(self, notify: Optional[Notifier] = None):
        """
        Args:
            notify: Called with (title, description, variant) when a
                conflict is raised; logs a warning by default
        """
        self.notify = notify or log_notifier
        self.conflict_data: Optional[Dict[str, Any]] = None
        self.show_conflict_dialog = False

    check_concurrency = staticmethod(check_concurrency)

    def handle_conflict(self, conflicting_data: Dict[str, Any], language: str = 'en') -> None:
        """Keep the conflicting record and raise a localized notification."""
        self.conflict_data = conflicting_data
        self.show_conflict_dialog = True

        messages = CONFLICT_MESSAGES[safe_locale(language)]
        self.notify(messages['title'], messages['description'], 'destructive')

    def resolve_conflict(self, action: str) -> str:
        """
        Close the conflict with the user's choice.

        Raises:
            ValueError: If action is not 'reload' or 'overwrite'
        """
        if action not in RESOLUTION_ACTIONS:
            raise ValueError(f"Unknown conflict resolution: {action}")

        self.show_conflict_dialog = False
        self.conflict_data = None
        return action
