from __future__ import annotations

from datetime import UTC, datetime, timedelta

from twinop.models.thing import Thing
from twinop.reconcile.differ import configure_sensor, sync_entries
from twinop.template import parse_template

T0 = datetime(2026, 1, 1, tzinfo=UTC)
T1 = T0 + timedelta(hours=1)

BASE = """
synthetics:
  temperature:
    javaScript: "return 1;"
  battery:
    alias: batteryLevel
reconciliation:
  changed:
    first:
      javaScript: "first();"
    second:
      javaScript: "second();"
  deleting:
    cleanup:
      javaScript: "cleanup();"
  timers:
    tick:
      code:
        javaScript: "tick();"
      period: 30s
"""


def _configured(text: str = BASE) -> Thing:
    thing = Thing.new("app", "device1/sensor")
    configure_sensor(parse_template(text), thing, now=T0)
    return thing


def test_fresh_thing_gets_every_family() -> None:
    thing = _configured()

    assert list(thing.synthetic_state) == ["battery", "temperature"]
    assert thing.synthetic_state["battery"].type.alias == "batteryLevel"
    assert thing.synthetic_state["temperature"].last_update == T0
    assert list(thing.reconciliation.changed) == ["first", "second"]
    assert thing.reconciliation.deleting["cleanup"].code.java_script == "cleanup();"
    timer = thing.reconciliation.timers["tick"]
    assert timer.period == timedelta(seconds=30)
    assert timer.stopped is False
    assert timer.last_run is None


def test_second_pass_is_stable() -> None:
    template = parse_template(BASE)
    thing = Thing.new("app", "device1/sensor")

    assert configure_sensor(template, thing, now=T0) is True
    snapshot = thing.model_dump()

    assert configure_sensor(template, thing, now=T1) is False
    assert thing.model_dump() == snapshot


def test_adding_and_removing_keys_leaves_other_runtime_state_alone() -> None:
    thing = _configured()
    thing.synthetic_state["temperature"].value = 20
    thing.reconciliation.changed["first"].last_log = ["ok"]
    thing.reconciliation.timers["tick"].last_run = T0
    thing.reconciliation.timers["tick"].stopped = True
    before = {
        "temperature": thing.synthetic_state["temperature"].model_dump(),
        "first": thing.reconciliation.changed["first"].model_dump(),
        "tick": thing.reconciliation.timers["tick"].model_dump(),
    }

    updated = BASE.replace("  battery:\n    alias: batteryLevel\n", "  humidity:\n    alias: rh\n")
    updated = updated.replace('    second:\n      javaScript: "second();"\n', "")
    assert configure_sensor(parse_template(updated), thing, now=T1) is True

    assert set(thing.synthetic_state) == {"humidity", "temperature"}
    assert thing.synthetic_state["humidity"].value is None
    assert thing.synthetic_state["humidity"].last_update == T1
    assert list(thing.reconciliation.changed) == ["first"]
    assert thing.synthetic_state["temperature"].model_dump() == before["temperature"]
    assert thing.reconciliation.changed["first"].model_dump() == before["first"]
    assert thing.reconciliation.timers["tick"].model_dump() == before["tick"]


def test_definition_changes_overwrite_only_definition_fields() -> None:
    thing = _configured()
    thing.synthetic_state["battery"].value = 87
    thing.reconciliation.timers["tick"].last_log = ["tick at 12:00"]

    changed = BASE.replace("alias: batteryLevel", 'javaScript: "return 2;"').replace("period: 30s", "period: 2m")
    assert configure_sensor(parse_template(changed), thing, now=T1) is True

    battery = thing.synthetic_state["battery"]
    assert battery.type.java_script == "return 2;"
    assert battery.type.alias is None
    assert battery.value == 87
    assert battery.last_update == T0
    timer = thing.reconciliation.timers["tick"]
    assert timer.period == timedelta(minutes=2)
    assert timer.last_log == ["tick at 12:00"]


def test_empty_template_clears_managed_state() -> None:
    thing = _configured()

    assert configure_sensor(parse_template(""), thing, now=T1) is True
    assert thing.synthetic_state == {}
    assert thing.reconciliation.changed == {}
    assert thing.reconciliation.deleting == {}
    assert thing.reconciliation.timers == {}


def test_sync_entries_keeps_insertion_order_and_appends() -> None:
    target = {"b": [1], "a": [2]}

    changed = sync_entries(
        {"a": 20, "c": 30, "b": 10},
        target,
        create=lambda value: [value],
        update=lambda value, current: False,
    )

    assert changed is True
    assert list(target) == ["b", "a", "c"]
    assert target["c"] == [30]


def test_sync_entries_unordered_sorts_without_reporting_change() -> None:
    target = {"b": 1, "a": 2}

    changed = sync_entries({"a": 2, "b": 1}, target, create=lambda v: v, update=lambda v, c: False, ordered=False)

    assert changed is False
    assert list(target) == ["a", "b"]


def test_unmanaged_thing_fields_survive() -> None:
    thing = Thing.model_validate(
        {
            "metadata": {"application": "app", "name": "device1/sensor", "resourceVersion": "7"},
            "reportedState": {"temp": {"value": 21, "lastUpdate": "2026-01-01T00:00:00Z"}},
        }
    )

    configure_sensor(parse_template(BASE), thing, now=T0)
    body = thing.to_api()

    assert body["reportedState"]["temp"]["value"] == 21
    assert body["metadata"]["resourceVersion"] == "7"
    assert body["syntheticState"]["temperature"]["value"] is None
    assert body["reconciliation"]["timers"]["tick"]["period"] == "30s"
