"""Unit tests for the optimistic concurrency check."""
from unittest.mock import Mock

import pytest

from client.concurrency import (
    CONFLICT_MESSAGES,
    OptimisticConcurrency,
    check_concurrency,
    parse_timestamp,
    safe_locale,
)


class TestCheckConcurrency:
    """Test cases for check_concurrency."""

    @pytest.mark.parametrize('original,current', [
        ({}, {}),
        ({'updatedAt': None}, {'updated_at': '2026-01-01T00:00:00Z'}),
        ({'updatedAt': '2026-01-01T00:00:00Z'}, {}),
        ({'updatedAt': ''}, {'updated_at': '2026-01-01T00:00:00Z'}),
    ])
    def test_missing_timestamp_allows_write(self, original, current):
        assert check_concurrency(original, current) is True

    def test_newer_snapshot_allows_write(self):
        assert check_concurrency(
            {'updatedAt': '2026-01-02T10:00:00Z'},
            {'updated_at': '2026-01-02T09:59:59Z'}
        ) is True

    def test_equal_timestamps_allow_write(self):
        assert check_concurrency(
            {'updatedAt': '2026-01-02T10:00:00.123456+00:00'},
            {'updated_at': '2026-01-02T10:00:00.123456+00:00'}
        ) is True

    def test_stale_snapshot_is_a_conflict(self):
        assert check_concurrency(
            {'updatedAt': '2026-01-02T10:00:00Z'},
            {'updated_at': '2026-01-02T10:00:00.001Z'}
        ) is False

    def test_compares_instants_across_offsets(self):
        """Test the same instant written in different zones is equal."""
        assert check_concurrency(
            {'updatedAt': '2026-01-02T04:00:00-06:00'},
            {'updated_at': '2026-01-02T10:00:00Z'}
        ) is True
        assert check_concurrency(
            {'updatedAt': '2026-01-02T03:59:00-06:00'},
            {'updated_at': '2026-01-02T10:00:00Z'}
        ) is False

    def test_accepts_snake_case_snapshot(self):
        assert check_concurrency(
            {'updated_at': '2026-01-01T00:00:00Z'},
            {'updated_at': '2026-01-02T00:00:00Z'}
        ) is False

    def test_naive_timestamp_treated_as_utc(self):
        assert parse_timestamp('2026-01-02T10:00:00') == parse_timestamp('2026-01-02T10:00:00Z')

    @pytest.mark.parametrize('value,microsecond', [
        ('2026-01-02T10:00:00.1+00:00', 100000),
        ('2026-01-02T10:00:00.12+00:00', 120000),
        ('2026-01-02T10:00:00.1234+00:00', 123400),
        ('2026-01-02T10:00:00.12345+00:00', 123450),
        ('2026-01-02T10:00:00.1234567Z', 123456),
        ('2026-01-02 10:00:00.12345+00', 123450),
    ])
    def test_parses_backend_fractional_seconds(self, value, microsecond):
        """Test timestamptz output with trimmed fractions and short offsets."""
        parsed = parse_timestamp(value)

        assert parsed.microsecond == microsecond
        assert parsed.utcoffset().total_seconds() == 0

    def test_parses_compact_offset(self):
        assert parse_timestamp('2026-01-02T04:00:00-0600') == parse_timestamp('2026-01-02T10:00:00Z')

    def test_trimmed_fractions_compare_as_instants(self):
        assert check_concurrency(
            {'updatedAt': '2026-01-02T10:00:00.12345+00:00'},
            {'updated_at': '2026-01-02T10:00:00.1234+00:00'}
        ) is True
        assert check_concurrency(
            {'updatedAt': '2026-01-02T10:00:00.1234+00'},
            {'updated_at': '2026-01-02T10:00:00.12345+00'}
        ) is False

    def test_unparseable_timestamp_is_a_conflict(self):
        """Test garbage timestamps block the write instead of raising."""
        assert check_concurrency(
            {'updatedAt': 'yesterday'},
            {'updated_at': '2026-01-02T10:00:00Z'}
        ) is False


class TestOptimisticConcurrency:
    """Test cases for conflict state and resolution."""

    def test_handle_conflict_sets_state_and_notifies(self):
        notify = Mock()
        state = OptimisticConcurrency(notify=notify)
        record = {'id': 'e1', 'updated_at': '2026-01-02T10:00:00Z'}

        state.handle_conflict(record)

        assert state.conflict_data == record
        assert state.show_conflict_dialog is True
        notify.assert_called_once_with(
            'Concurrency Conflict',
            CONFLICT_MESSAGES['en']['description'],
            'destructive'
        )

    def test_handle_conflict_spanish(self):
        notify = Mock()
        state = OptimisticConcurrency(notify=notify)

        state.handle_conflict({'id': 'e1'}, language='es')

        title, description, _ = notify.call_args[0]
        assert title == 'Conflicto de Concurrencia'
        assert description.startswith('Este evento fue actualizado')

    def test_unknown_language_falls_back_to_english(self):
        assert safe_locale('fr') == 'en'
        assert safe_locale(None) == 'en'
        assert safe_locale('es') == 'es'

    @pytest.mark.parametrize('action', ['reload', 'overwrite'])
    def test_resolve_conflict_clears_state(self, action):
        state = OptimisticConcurrency(notify=Mock())
        state.handle_conflict({'id': 'e1'})

        assert state.resolve_conflict(action) == action
        assert state.conflict_data is None
        assert state.show_conflict_dialog is False

    def test_resolve_conflict_rejects_merge(self):
        state = OptimisticConcurrency(notify=Mock())
        state.handle_conflict({'id': 'e1'})

        with pytest.raises(ValueError):
            state.resolve_conflict('merge')
        assert state.show_conflict_dialog is True

    def test_default_notifier_logs_warning(self, caplog):
        state = OptimisticConcurrency()

        with caplog.at_level('WARNING', logger='client.concurrency'):
            state.handle_conflict({'id': 'e1'})

        assert 'Concurrency Conflict' in caplog.text
