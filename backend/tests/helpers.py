"""Test doubles for connections, spin timers, HTTP sessions and the remote backend."""
import json

import requests

from wheelroom.exceptions import BackendError
from wheelroom.models import Item
from wheelroom.services.backend import RoomRecord


class FakeConnection:
    def __init__(self, name='conn', fail=False):
        self.name = name
        self.fail = fail
        self.events = []

    def send(self, event, data):
        if self.fail:
            raise ConnectionError(f"{self.name} is gone")
        self.events.append((event, data))

    def named(self, event):
        return [data for name, data in self.events if name == event]

    def clear(self):
        self.events = []

    def __repr__(self):
        return f"FakeConnection({self.name!r})"


class FakeTimer:
    def __init__(self, callback, name):
        self.callback = callback
        self.name = name
        self.cancel_calls = 0

    @property
    def cancelled(self):
        return self.cancel_calls > 0

    def cancel(self):
        self.cancel_calls += 1


class TimerRecorder:
    """timer_factory that hands out FakeTimers; tests drive ticks by hand."""

    def __init__(self):
        self.timers = []

    def __call__(self, callback, name=''):
        timer = FakeTimer(callback, name)
        self.timers.append(timer)
        return timer


class FakeBackend:
    def __init__(self):
        self.rooms = {}
        self.catalogs = {}
        self.fail = False
        self.calls = []

    def add_room(self, room_id, host_id, players):
        self.rooms[room_id] = RoomRecord(room_id, host_id, list(players))

    def _check(self, action):
        self.calls.append(action)
        if self.fail:
            raise BackendError(action, 'backend is down')

    def get_room(self, room_id):
        self._check('get_room')
        return self.rooms.get(room_id)

    def create_room(self, room_id, host_id):
        self._check('create_room')
        self.add_room(room_id, host_id, [])

    def add_player(self, room_id, player_id):
        self._check('add_player')
        record = self.rooms[room_id]
        if player_id not in record.players:
            self.rooms[room_id] = record._replace(players=record.players + [player_id])

    def get_items(self, filter):
        self._check('get_items')
        return [Item.from_dict(d) for d in self.catalogs.get(filter, [])]


class FakeResponse:
    def __init__(self, body=None, status=200, text=None):
        self.status_code = status
        if text is None:
            text = '' if body is None else json.dumps(body)
        self.text = text
        self.content = text.encode()

    def json(self):
        return json.loads(self.text)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeSession:
    """Stands in for requests.Session; replies are queued per test."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def _next(self):
        reply = self.responses.pop(0) if self.responses else FakeResponse({})
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get(self, url, params=None, timeout=None):
        self.requests.append({'method': 'GET', 'url': url, 'params': params, 'timeout': timeout})
        return self._next()

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        self.requests.append({'method': method, 'url': url, 'headers': headers, 'timeout': timeout, **kwargs})
        return self._next()


class StopLoop(Exception):
    pass


class FakeSocketIO:
    """Counts sleeps and ends a background loop after ``passes`` iterations."""

    def __init__(self, passes):
        self.passes = passes
        self.sleeps = []

    def sleep(self, seconds):
        if len(self.sleeps) >= self.passes:
            raise StopLoop()
        self.sleeps.append(seconds)
