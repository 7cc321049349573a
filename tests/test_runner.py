import logging
import threading

import pytest

from landscape_deploy.runner import DeploymentInterrupted, DeploymentRunner, DeploymentTimeout
from landscape_deploy.types import SUMMARY_RECORD


def _runner(client, notifier, **kwargs):
    emitted = []
    runner = DeploymentRunner(client, notifier, poll_interval=0, report_callback=emitted.append, **kwargs)
    return runner, emitted


def test_end_to_end_deployment(make_client, ply_servers, notifier, caplog):
    client = make_client(
        ply_servers,
        [
            ("in-progress", {1: "queued", 2: "queued"}),
            ("succeeded", {1: "succeeded", 2: "succeeded"}),
        ],
    )
    runner, emitted = _runner(client, notifier)

    with caplog.at_level(logging.INFO):
        outcome = runner.run("ply-servers", 28)

    assert outcome.status == "succeeded"
    assert outcome.is_clean_exit
    assert outcome.polls == 2
    assert len(emitted) == 2
    assert emitted[0] != emitted[1]
    assert [r.computer_name for r in emitted[1]] == ["ply-db-01", "ply-web-01", SUMMARY_RECORD]

    assert client.calls[:2] == [("get-computers", "ply-servers"), ("execute-script", "ply-servers", 28)]
    assert len(notifier.messages) == 3
    assert notifier.messages[0].startswith("I am deploying software using Landscape script '28'")
    assert "'ply-servers'" in notifier.messages[1]
    assert notifier.messages[2] == (
        "ply-db-01: succeeded\nply-web-01: succeeded\n** ALL (Summary) **: succeeded\n"
    )
    assert "Deployment completed with status 'succeeded'." in caplog.text


def test_unchanged_reports_are_not_emitted_again(make_client, ply_servers, notifier):
    client = make_client(
        ply_servers,
        [
            ("in-progress", {1: "queued", 2: "queued"}),
            ("in-progress", {1: "queued", 2: "queued"}),
            ("in-progress", {1: "succeeded", 2: "queued"}),
            ("failed", {1: "succeeded", 2: "failed"}),
        ],
    )
    runner, emitted = _runner(client, notifier)

    outcome = runner.run("ply-servers", 28)

    assert outcome.polls == 4
    assert len(emitted) == 3


@pytest.mark.parametrize("status", ["succeeded", "failed", "canceled"])
def test_loop_stops_on_first_terminal_tick(make_client, ply_servers, notifier, status):
    client = make_client(ply_servers, [(status, {1: status, 2: status}), ("queued", {})])
    runner, _ = _runner(client, notifier)

    outcome = runner.poll({s.id: s for s in ply_servers}, 100)

    assert outcome.status == status
    assert outcome.polls == 1
    assert len(client.polls) == 1


def test_loop_continues_on_unknown_statuses(make_client, ply_servers, notifier):
    statuses = ["queued", "in-progress", "scheduled", "unapproved", "succeeded"]
    client = make_client(ply_servers, [(s, {}) for s in statuses])
    runner, _ = _runner(client, notifier)

    outcome = runner.poll({}, 100)

    assert outcome.polls == len(statuses)


def test_failed_deployment_logs_error(make_client, ply_servers, notifier, caplog):
    client = make_client(ply_servers, [("failed", {1: "failed", 2: "succeeded"})])
    runner, _ = _runner(client, notifier)

    with caplog.at_level(logging.INFO):
        outcome = runner.run("ply-servers", 28)

    assert not outcome.is_clean_exit
    errors = [r for r in caplog.records if r.levelno == logging.ERROR]
    assert [r.getMessage() for r in errors] == ["Deployment completed with status 'failed'."]


def test_canceled_deployment_is_informational(make_client, ply_servers, notifier, caplog):
    client = make_client(ply_servers, [("canceled", {1: "canceled", 2: "canceled"})])
    runner, _ = _runner(client, notifier)

    with caplog.at_level(logging.INFO):
        outcome = runner.run("ply-servers", 28)

    assert outcome.is_clean_exit
    assert not [r for r in caplog.records if r.levelno >= logging.ERROR]


def test_stop_during_server_lookup_never_dispatches(make_client, ply_servers, notifier):
    client = make_client(ply_servers, [("queued", {})])
    stop = threading.Event()
    lookup = client.get_computers

    def get_computers(tag):
        servers = lookup(tag)
        stop.set()
        return servers

    client.get_computers = get_computers
    runner, emitted = _runner(client, notifier, stop_event=stop)

    with pytest.raises(DeploymentInterrupted):
        runner.run("ply-servers", 28)

    assert client.calls == [("get-computers", "ply-servers")]
    assert notifier.messages == []
    assert emitted == []


def test_stop_during_start_notice_never_dispatches(make_client, ply_servers):
    client = make_client(ply_servers, [("queued", {})])
    stop = threading.Event()

    class StoppingNotifier:
        def notify(self, text):
            stop.set()
            return True

    runner, _ = _runner(client, StoppingNotifier(), stop_event=stop)

    with pytest.raises(DeploymentInterrupted):
        runner.run("ply-servers", 28)

    assert all(call[0] != "execute-script" for call in client.calls)


def test_stop_while_polling_skips_final_notice(make_client, ply_servers, notifier):
    client = make_client(ply_servers, [("queued", {})])
    stop = threading.Event()
    dispatch = client.execute_script

    def execute_script(tag, script_id):
        parent = dispatch(tag, script_id)
        stop.set()
        return parent

    client.execute_script = execute_script
    runner, emitted = _runner(client, notifier, stop_event=stop)

    with pytest.raises(DeploymentInterrupted):
        runner.run("ply-servers", 28)

    assert emitted == []
    assert len(notifier.messages) == 1
    assert len(client.polls) == 1


def test_poll_timeout_raises(make_client, ply_servers, notifier):
    ticks = iter([0.0, 5.0, 11.0])
    client = make_client(ply_servers, [("queued", {}), ("queued", {}), ("queued", {})])
    runner, _ = _runner(client, notifier, poll_timeout=10, clock=lambda: next(ticks))

    with pytest.raises(DeploymentTimeout):
        runner.poll({}, 100)

    assert len(client.polls) == 1
