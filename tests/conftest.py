"""Shared fixtures: an in-memory stand-in for the hosted backend."""
import json
import re
from datetime import datetime, timezone
from urllib.parse import parse_qsl, urlparse

import pytest
import responses

from client.auth import AuthClient, AuthSession
from client.config import BackendConfig

BASE_URL = 'https://baas.test'
NATURAL_KEY = ('talent_id', 'event_title', 'start_date', 'end_date')


def _matches(row, column, expression):
    op, _, value = expression.partition('.')
    stored = row.get(column)
    if op == 'eq':
        return str(stored) == value
    if op == 'gte':
        return stored is not None and str(stored) >= value
    if op == 'lt':
        return stored is not None and str(stored) < value
    if op == 'in':
        return str(stored) in value.strip('()').split(',')
    raise AssertionError(f'unsupported filter {expression}')


class FakeBackend:
    """Answers auth, RPC and calendar_event REST calls from memory."""

    def __init__(self, rsps):
        self.rsps = rsps
        self.rows = []
        self.permissions = {'calendar:manage', 'calendar:edit'}
        self.user = {'id': 'user-1', 'email': 'admin@example.com'}
        self.talent_profiles = [{'id': 't1', 'user_id': 'user-1'}]
        self.fail_upserts = False
        self._next_id = 1

        rsps.add_callback(responses.GET, f'{BASE_URL}/auth/v1/user', callback=self._get_user)
        rsps.add_callback(
            responses.POST,
            f'{BASE_URL}/rest/v1/rpc/has_permission',
            callback=self._has_permission
        )
        rsps.add_callback(
            responses.GET,
            re.compile(rf'{re.escape(BASE_URL)}/rest/v1/talent_profiles.*'),
            callback=self._talent_profiles
        )
        table = re.compile(rf'{re.escape(BASE_URL)}/rest/v1/calendar_event.*')
        rsps.add_callback(responses.GET, table, callback=self._select)
        rsps.add_callback(responses.POST, table, callback=self._upsert)
        rsps.add_callback(responses.DELETE, table, callback=self._delete)
        rsps.add_callback(responses.PATCH, table, callback=self._patch)

    def add_row(self, **values):
        row = dict(values)
        row.setdefault('id', f'row-{self._next_id}')
        row.setdefault('all_day', True)
        row.setdefault('timezone', 'UTC')
        row.setdefault('updated_at', datetime.now(timezone.utc).isoformat())
        self._next_id += 1
        self.rows.append(row)
        return row

    def _filters(self, request):
        return [
            (key, value) for key, value in parse_qsl(urlparse(request.url).query)
            if key not in ('select', 'order', 'limit', 'on_conflict')
        ]

    def _find(self, request):
        filters = self._filters(request)
        return [
            row for row in self.rows
            if all(_matches(row, column, expr) for column, expr in filters)
        ]

    def _json(self, status, body):
        return (status, {'Content-Type': 'application/json'}, json.dumps(body))

    def _get_user(self, request):
        if request.headers.get('Authorization') != 'Bearer jwt-1':
            return self._json(401, {'msg': 'invalid JWT'})
        return self._json(200, self.user)

    def _has_permission(self, request):
        payload = json.loads(request.body)
        return self._json(200, payload['p_scope'] in self.permissions)

    def _talent_profiles(self, request):
        return self._json(200, [
            {'id': row['id']} for row in self.talent_profiles
            if all(_matches(row, column, expr) for column, expr in self._filters(request))
        ])

    def _select(self, request):
        return self._json(200, [dict(row) for row in self._find(request)])

    def _upsert(self, request):
        if self.fail_upserts:
            return self._json(500, {'message': 'upsert failed'})
        payload = json.loads(request.body)
        if len({frozenset(values) for values in payload}) > 1:
            return self._json(400, {'code': 'PGRST102', 'message': 'All object keys must match'})
        # merge-duplicates only writes the columns that were sent
        for values in payload:
            key = tuple(values[column] for column in NATURAL_KEY)
            existing = next(
                (row for row in self.rows if tuple(row[c] for c in NATURAL_KEY) == key),
                None
            )
            if existing is None:
                self.add_row(**values)
            else:
                existing.update(values)
                existing['updated_at'] = datetime.now(timezone.utc).isoformat()
        return (201, {}, '')

    def _delete(self, request):
        deleted = self._find(request)
        self.rows = [row for row in self.rows if row not in deleted]
        return self._json(200, deleted)

    def _patch(self, request):
        updated = self._find(request)
        for row in updated:
            row.update(json.loads(request.body))
        return self._json(200, updated)


@pytest.fixture
def backend():
    """Fake backend with responses active for the duration of a test."""
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield FakeBackend(rsps)


@pytest.fixture
def config():
    return BackendConfig(url=BASE_URL, anon_key='anon-key')


@pytest.fixture
def auth(config):
    """Auth client holding a signed-in session."""
    client = AuthClient(config)
    client.set_session(AuthSession(access_token='jwt-1', user={'id': 'user-1'}))
    return client


@pytest.fixture
def commit_env(monkeypatch):
    """Environment of the commit function."""
    monkeypatch.setenv('BAAS_URL', BASE_URL)
    monkeypatch.setenv('BAAS_SERVICE_ROLE_KEY', 'service-key')
    monkeypatch.setenv('LOG_LEVEL', 'INFO')
    monkeypatch.setenv('TIMEOUT_SECONDS', '5')
