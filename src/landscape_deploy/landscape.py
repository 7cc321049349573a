from __future__ import annotations

import json
import logging
import subprocess
from typing import Any, Optional, Sequence

from .executors import Executor
from .types import Activity, Server

logger = logging.getLogger(__name__)


class LandscapeError(Exception):
    """A call to the Landscape API failed or returned something unusable."""


class DataConsistencyError(LandscapeError):
    """Landscape data does not line up with what the deployment expects."""


class LandscapeClient:
    """Thin wrapper around the ``landscape-api`` command line client."""

    def __init__(self, executor: Executor, command: Optional[Sequence[str]] = None):
        self.executor = executor
        self.command = list(command or ["landscape-api"])

    def get_computers(self, tag: str) -> list[Server]:
        rows = self._call("get-computers", "--query", f"tag:{tag}")
        return [self._server(row) for row in self._as_list(rows)]

    def execute_script(self, tag: str, script_id: int) -> Activity:
        row = self._call("execute-script", f"tag:{tag}", str(script_id))
        if isinstance(row, list):
            if len(row) != 1:
                raise LandscapeError(f"execute-script returned {len(row)} activities, expected 1")
            row = row[0]
        return self._activity(row)

    def get_activities(self, activity_id: int) -> list[Activity]:
        rows = self._call("get-activities", "--query", f"id:{activity_id}")
        return [self._activity(row) for row in self._as_list(rows)]

    def get_child_activities(self, parent_id: int) -> list[Activity]:
        rows = self._call("get-activities", "--query", f"parent-id:{parent_id}")
        return [self._activity(row) for row in self._as_list(rows)]

    def _call(self, *args: str) -> Any:
        command = [*self.command, *args, "--json"]
        try:
            result = self.executor.run(command)
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or exc.stdout or "").strip()
            raise LandscapeError(f"{args[0]} failed (rc={exc.returncode}): {detail}") from exc
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise LandscapeError(f"{args[0]} failed: {exc}") from exc
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise LandscapeError(f"{args[0]} returned invalid JSON") from exc

    @staticmethod
    def _as_list(rows: Any) -> list[dict[str, Any]]:
        if not isinstance(rows, list):
            raise LandscapeError(f"Expected a JSON list, got {type(rows).__name__}")
        return rows

    @staticmethod
    def _server(row: Any) -> Server:
        try:
            return Server(
                id=int(row["id"]),
                hostname=str(row["hostname"]),
                tags=tuple(row.get("tags") or ()),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise LandscapeError(f"Malformed computer record: {row!r}") from exc

    @staticmethod
    def _activity(row: Any) -> Activity:
        try:
            computer_id = row.get("computer_id")
            parent_id = row.get("parent_id")
            return Activity(
                id=int(row["id"]),
                status=str(row["activity_status"]),
                computer_id=int(computer_id) if computer_id is not None else None,
                parent_id=int(parent_id) if parent_id is not None else None,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise LandscapeError(f"Malformed activity record: {row!r}") from exc
