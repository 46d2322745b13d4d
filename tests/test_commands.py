# tests/test_commands.py

from __future__ import annotations

from taskfence.cli.commands import CommandRegistry, registry
from taskfence.geofence.position_sources import PollingPositionSource
from taskfence.tasks.task_models import TaskPriority, TaskTag


def run(state, line: str) -> str:
    out = registry.handle(state, line)
    assert out is not None
    return out


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2:" + ",".join(args)

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])

    notes: list[str] = []
    assert reg.handle(state, '/a x "y z"') == "h2:x,y z"
    assert reg.handle(state, "/bee", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]
    assert "/a - a" in reg.build_help()


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_loc_add_list_delete(state) -> None:
    out = run(state, '/loc add "Corner shop" 48.8566 2.3522 150')
    assert "Corner shop" in out

    (loc,) = state.location_store.list_locations()
    assert loc.radius == 150.0
    assert loc.id in run(state, "/loc list")

    assert "Deleted" in run(state, f"/loc del {loc.id}")
    assert "No saved locations" in run(state, "/loc")


def test_loc_add_uses_default_radius_and_validates(state) -> None:
    run(state, "/loc add Home 1 2")
    assert state.location_store.list_locations()[0].radius == 100.0

    assert "Invalid location" in run(state, "/loc add Moon 200 0")
    assert "Usage" in run(state, "/loc add OnlyName")


def test_task_add_list_done_delete(state) -> None:
    out = run(state, '/task add Return the badge priority=high tag=work due=2030-01-15 desc="front desk"')
    assert "added" in out

    (task,) = state.task_store.list_tasks()
    assert task.title == "Return the badge"
    assert task.priority == TaskPriority.HIGH
    assert task.tag == TaskTag.WORK
    assert task.description == "front desk"
    assert task.due_at is not None

    assert "Return the badge" in run(state, "/task list work")
    assert run(state, "/task list hobbies") == "No tasks."
    assert "front desk" in run(state, f"/task show {task.id}")

    assert "completed" in run(state, f"/task done {task.id}")
    assert run(state, "/task list open") == "No tasks."
    assert "open" in run(state, f"/task done #{task.id}")

    assert "deleted" in run(state, f"/task del {task.id}")
    assert "No task" in run(state, f"/task show {task.id}")


def test_task_add_rejects_bad_options(state) -> None:
    assert "Invalid task option" in run(state, "/task add thing tag=chores")
    assert "Invalid task option" in run(state, "/task add thing due=tomorrow")
    assert "Usage" in run(state, "/task add priority=high")
    assert state.task_store.count_tasks() == 0


def test_remind_then_pos_triggers_arrival(state, notifier) -> None:
    run(state, "/loc add Office 48.8566 2.3522")
    (loc,) = state.location_store.list_locations()
    run(state, "/task add Buy milk")
    (task,) = state.task_store.list_tasks()

    out = run(state, f"/remind {task.id} {loc.id} both Grab the milk")
    assert "both" in out

    stored = state.task_store.get_task(task.id).location_reminder
    assert stored is not None
    assert stored.notify_on_arrival and stored.notify_on_departure
    assert stored.message == "Grab the milk"

    assert "Location monitoring started" in run(state, "/monitor start")
    out = run(state, "/pos 48.8566 2.3522 5")
    assert "Office: 0 m (inside" in out

    assert [n.title for n in notifier.sent] == ["Arrived at Office"]
    assert notifier.sent[0].body == "Grab the milk"

    run(state, "/pos 48.9 2.3522")
    assert [n.title for n in notifier.sent] == ["Arrived at Office", "Left Office"]


def test_remind_off_on_and_clear(state, notifier) -> None:
    loc = state.location_store.add_location("Gym", 10.0, 10.0)
    task_id = state.task_store.add_task(title="Bring towel")
    run(state, f"/remind {task_id} {loc.id}")

    assert "disabled" in run(state, f"/remind off {task_id}")
    assert state.task_store.get_task(task_id).location_reminder.enabled is False

    run(state, "/monitor start")
    run(state, "/pos 10 10")
    assert notifier.sent == []

    assert "enabled" in run(state, f"/remind on {task_id}")
    assert "removed" in run(state, f"/remind clear {task_id}")
    assert state.task_store.get_task(task_id).location_reminder is None
    assert "no location reminder" in run(state, f"/remind off {task_id}")


def test_remind_unknown_task_or_location(state) -> None:
    task_id = state.task_store.add_task(title="t")
    assert "No task" in run(state, "/remind 999 somewhere")
    assert "No location" in run(state, f"/remind {task_id} somewhere")


def test_pos_when_monitoring_is_off(state, notifier) -> None:
    out = run(state, "/pos 1 2")
    assert "monitoring is off" in out
    assert notifier.sent == []
    assert "Invalid position" in run(state, "/pos 1 500")


def test_pos_requires_manual_source(state) -> None:
    state.position_source = PollingPositionSource(lambda high_accuracy: None)
    assert "only works with manual positioning" in run(state, "/pos 1 2")


def test_monitor_status_and_stop(state) -> None:
    assert "OFF" in run(state, "/monitor status")
    run(state, "/monitor start")
    assert "ON" in run(state, "/monitor")
    assert "Samples processed: 0" in run(state, "/status")
    assert "stopped" in run(state, "/monitor stop")
    assert "not running" in run(state, "/monitor stop")


def test_stats_and_notify(state) -> None:
    state.task_store.add_task(title="a", completed=True)
    state.task_store.add_task(title="b", tag=TaskTag.STUDIES)

    out = run(state, "/stats")
    assert "Total: 2" in out
    assert "Completion rate: 50%" in out
    assert "Studies: 0 / 1" in out

    assert run(state, "/notify") == "Notifications enabled."
    assert "/remind" in run(state, "/help")


def test_console_handle_line_wraps_crashes_and_plain_text(state, monkeypatch) -> None:
    from taskfence.connectors import console_connector

    assert console_connector.handle_line(state, "hello") == console_connector.NOT_A_COMMAND
    assert "Available commands" in console_connector.handle_line(state, "/help")

    def boom(state, args):
        raise RuntimeError("handler bug")

    reg = CommandRegistry()
    reg.register("boom", boom, "crashes")
    monkeypatch.setattr(console_connector, "command_registry", reg)
    assert console_connector.handle_line(state, "/boom") == "Internal error while handling a command."


def test_console_loop_runs_commands_until_exit(state, monkeypatch, capsys) -> None:
    from taskfence.connectors import console_connector

    lines = iter(["/task add Water plants", "", "/exit", "/task add never"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))

    console_connector.run_console_loop(state)

    assert state.task_store.count_tasks() == 1
    assert "Task #1 added." in capsys.readouterr().out


def test_task_edit_updates_fields_and_clears_due(state) -> None:
    task_id = state.task_store.add_task(title="Draft report", tag=TaskTag.WORK)

    out = run(state, f'/task edit {task_id} title="Final report" priority=high tag=studies due=2030-01-15 desc="v2"')
    assert f"Task #{task_id} updated" in out

    task = state.task_store.get_task(task_id)
    assert task.title == "Final report"
    assert task.priority == TaskPriority.HIGH
    assert task.tag == TaskTag.STUDIES
    assert task.description == "v2"
    assert task.due_at is not None

    run(state, f"/task edit {task_id} due=none")
    cleared = state.task_store.get_task(task_id)
    assert cleared.due_at is None
    assert cleared.title == "Final report"


def test_task_edit_rejects_bad_input(state) -> None:
    task_id = state.task_store.add_task(title="Keep me")

    assert "Usage" in run(state, f"/task edit {task_id}")
    assert "Usage" in run(state, f"/task edit {task_id} stray words")
    assert "Invalid task option" in run(state, f"/task edit {task_id} priority=urgent")
    assert "Invalid task option" in run(state, f'/task edit {task_id} title=""')
    assert run(state, "/task edit 999 title=x") == "No task #999."
    assert state.task_store.get_task(task_id).title == "Keep me"


def test_task_list_by_day_and_today(state) -> None:
    run(state, "/task add Pay rent due=2030-01-15")
    run(state, "/task add Dentist due=2030-01-16")
    run(state, "/task add Someday")

    out = run(state, "/task list 2030-01-15")
    assert "Pay rent" in out
    assert "Dentist" not in out
    assert "Someday" not in out

    assert run(state, "/task list 2030-02-01") == "No tasks."
    assert "Invalid date" in run(state, "/task list 2030-13-01")
    assert run(state, "/task list today") == "No tasks."


def test_task_list_open_is_ordered_by_due_date(state) -> None:
    run(state, "/task add Later due=2030-03-01")
    run(state, "/task add No deadline")
    run(state, "/task add Sooner due=2030-01-01")

    lines = run(state, "/task list open").splitlines()
    assert "Sooner" in lines[0]
    assert "Later" in lines[1]
    assert "No deadline" in lines[2]
    assert "Tasks: 3 (open: 3)" in run(state, "/status")


def test_task_reopen(state) -> None:
    task_id = state.task_store.add_task(title="Water plants", completed=True)

    assert run(state, f"/task reopen {task_id}") == f"Task #{task_id} marked open."
    assert state.task_store.get_task(task_id).completed is False
    assert "Water plants" in run(state, "/task list open")
    assert run(state, "/task reopen 999") == "No task #999."
