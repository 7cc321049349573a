from __future__ import annotations

import pytest

from landscape_deploy.types import Activity, Server


class FakeClient:
    """Scripted stand-in for LandscapeClient.

    ``polls`` is a list of ``(parent_status, {computer_id: child_status})``
    consumed one per report.
    """

    def __init__(self, servers: list[Server], polls, parent_id: int = 100):
        self.servers = servers
        self.polls = list(polls)
        self.parent_id = parent_id
        self.calls: list[tuple] = []
        self._current = None

    def get_computers(self, tag: str) -> list[Server]:
        self.calls.append(("get-computers", tag))
        return list(self.servers)

    def execute_script(self, tag: str, script_id: int) -> Activity:
        self.calls.append(("execute-script", tag, script_id))
        return Activity(id=self.parent_id, status="queued")

    def get_child_activities(self, parent_id: int) -> list[Activity]:
        self.calls.append(("children", parent_id))
        self._current = self.polls.pop(0)
        _, children = self._current
        return [
            Activity(id=1000 + computer_id, status=status, computer_id=computer_id, parent_id=parent_id)
            for computer_id, status in children.items()
        ]

    def get_activities(self, activity_id: int) -> list[Activity]:
        self.calls.append(("activity", activity_id))
        parent_status, _ = self._current
        return [Activity(id=activity_id, status=parent_status)]


class RecordingNotifier:
    def __init__(self):
        self.messages: list[str] = []

    def notify(self, text: str) -> bool:
        self.messages.append(text)
        return True


@pytest.fixture
def ply_servers() -> list[Server]:
    return [
        Server(id=1, hostname="ply-web-01", tags=("ply-servers",)),
        Server(id=2, hostname="ply-db-01", tags=("ply-servers",)),
    ]


@pytest.fixture
def make_client():
    return FakeClient


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
