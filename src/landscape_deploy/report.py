from __future__ import annotations

from typing import Mapping, Optional

from .landscape import DataConsistencyError, LandscapeClient
from .types import SUMMARY_RECORD, ActivityReport, ReportRecord, Server


def get_servers(client: LandscapeClient, tag: str) -> dict[int, Server]:
    """Return the servers in activity group ``tag`` keyed on computer id."""

    return {server.id: server for server in client.get_computers(tag)}


def generate_activity_report(
    client: LandscapeClient,
    servers: Mapping[int, Server],
    parent_id: int,
) -> ActivityReport:
    """Build the per-server report for ``parent_id`` with the summary record last."""

    records: list[ReportRecord] = []
    for child in client.get_child_activities(parent_id):
        server = servers.get(child.computer_id)  # type: ignore[arg-type]
        if server is None:
            raise DataConsistencyError(
                f"Activity {child.id} refers to unknown computer {child.computer_id}"
            )
        records.append(
            ReportRecord(
                computer_name=server.hostname,
                computer_id=server.id,
                activity_id=child.id,
                activity_status=child.status,
            )
        )
    records.sort(key=lambda record: record.computer_name.lower())

    parents = client.get_activities(parent_id)
    if len(parents) != 1:
        raise DataConsistencyError(
            f"Expected exactly one activity with id {parent_id}, got {len(parents)}"
        )
    parent = parents[0]
    records.append(
        ReportRecord(
            computer_name=SUMMARY_RECORD,
            computer_id="-",
            activity_id=parent.id,
            activity_status=parent.status,
        )
    )
    return tuple(records)


def reports_equal(first: Optional[ActivityReport], second: Optional[ActivityReport]) -> bool:
    if first is None or second is None:
        return first is second
    return tuple(first) == tuple(second)


def summary_status(report: ActivityReport) -> str:
    return report[-1].activity_status


def report_to_text(report: ActivityReport) -> str:
    """Render ``report`` as ``<hostname>: <status>`` lines."""

    return "".join(f"{record.computer_name}: {record.activity_status}\n" for record in report)
