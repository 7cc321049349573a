from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Mapping, Optional

from .landscape import LandscapeClient
from .notify import SlackNotifier
from .report import generate_activity_report, get_servers, report_to_text, reports_equal, summary_status
from .types import TERMINAL_STATUSES, ActivityReport, DeploymentOutcome, Server

logger = logging.getLogger(__name__)


class DeploymentInterrupted(Exception):
    pass


class DeploymentTimeout(Exception):
    pass


class DeploymentRunner:
    """Dispatches a Landscape script and follows it until it finishes."""

    def __init__(
        self,
        client: LandscapeClient,
        notifier: SlackNotifier,
        *,
        poll_interval: float = 15.0,
        poll_timeout: Optional[float] = None,
        stop_event: Optional[threading.Event] = None,
        report_callback: Optional[Callable[[ActivityReport], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.notifier = notifier
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self.stop_event = stop_event or threading.Event()
        self.report_callback = report_callback
        self.clock = clock

    def run(self, tag: str, script_id: int) -> DeploymentOutcome:
        logger.info("Getting servers associated with the Landscape activity group '%s'.", tag)
        servers = get_servers(self.client, tag)
        logger.debug("Resolved %d servers for '%s'", len(servers), tag)

        self._check_stop("before announcing the deployment")
        logger.info("Executing Landscape script '%s' for '%s'.", script_id, tag)
        self.notifier.notify(
            f"I am deploying software using Landscape script '{script_id}' "
            f"for the group of servers called '{tag}'..."
        )
        # execute-script is not idempotent; nothing may be dispatched once a stop was requested.
        self._check_stop("before dispatching the script")
        parent = self.client.execute_script(tag, script_id)

        outcome = self.poll(servers, parent.id)

        self.notifier.notify(
            f"I have finished deploying software using Landscape script '{script_id}' "
            f"for the group of servers called '{tag}'.  Here are the details for each server:"
        )
        self.notifier.notify(report_to_text(outcome.report))

        message = f"Deployment completed with status '{outcome.status}'."
        if outcome.is_clean_exit:
            logger.info(message)
        else:
            logger.error(message)
        return outcome

    def poll(self, servers: Mapping[int, Server], parent_id: int) -> DeploymentOutcome:
        deadline = None if self.poll_timeout is None else self.clock() + self.poll_timeout
        last_report: Optional[ActivityReport] = None
        polls = 0
        while True:
            if self.stop_event.wait(self.poll_interval):
                raise DeploymentInterrupted(f"Stopped while waiting on activity {parent_id}")

            report = generate_activity_report(self.client, servers, parent_id)
            polls += 1
            if not reports_equal(last_report, report):
                logger.info("The deployment's current status is:")
                if self.report_callback:
                    self.report_callback(report)
            last_report = report

            status = summary_status(report)
            if status in TERMINAL_STATUSES:
                return DeploymentOutcome(status=status, report=report, polls=polls)
            logger.info("Deploying the software...")

            if deadline is not None and self.clock() >= deadline:
                raise DeploymentTimeout(
                    f"Activity {parent_id} still '{status}' after {self.poll_timeout:g}s"
                )

    def _check_stop(self, when: str) -> None:
        if self.stop_event.is_set():
            raise DeploymentInterrupted(f"Stopped {when}")
