"""Template differencing.

Brings the declared sub-state of a Thing (synthetic features, changed and
deleting handlers, timers) in line with a :class:`ThingTemplate` in one
pass per family:

- template keys missing on the Thing get a fresh record, runtime fields at
  their defaults;
- template keys present on the Thing only have their definition fields
  (type, code, period) overwritten, runtime fields are left alone;
- Thing keys absent from the template are removed.

Handler and timer families keep the position of existing entries and
append new ones. Synthetic features are a plain keyed mapping: their
order carries no meaning, so they are left key-sorted and order never
counts as a change.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, MutableMapping
from datetime import datetime
from typing import TypeVar

from twinop.models._base import utcnow
from twinop.models.template import CodeDefinition, SyntheticDefinition, ThingTemplate, TimerDefinition
from twinop.models.thing import Changed, Deleting, SyntheticFeature, Thing, Timer

D = TypeVar("D")
R = TypeVar("R")


def sync_entries(
    definitions: Mapping[str, D],
    target: MutableMapping[str, R],
    create: Callable[[D], R],
    update: Callable[[D, R], bool],
    *,
    ordered: bool = True,
) -> bool:
    """Sync *target* with *definitions*, returning ``True`` if *target* changed.

    *create* builds a new record from a definition. *update* overwrites the
    definition-controlled fields of an existing record and reports whether
    any of them differed.
    """
    changed = False

    for key, definition in definitions.items():
        current = target.get(key)
        if current is None:
            target[key] = create(definition)
            changed = True
        elif update(definition, current):
            changed = True

    for key in [key for key in target if key not in definitions]:
        del target[key]
        changed = True

    if not ordered:
        entries = sorted(target.items())
        target.clear()
        target.update(entries)

    return changed


def _update_synthetic(definition: SyntheticDefinition, current: SyntheticFeature) -> bool:
    wanted = definition.to_type()
    if (current.type.java_script, current.type.alias) == (wanted.java_script, wanted.alias):
        return False
    current.type = wanted
    return True


def _update_changed(definition: CodeDefinition, current: Changed) -> bool:
    wanted = definition.to_code()
    if current.code.java_script == wanted.java_script:
        return False
    current.code = wanted
    return True


def _update_deleting(definition: CodeDefinition, current: Deleting) -> bool:
    wanted = definition.to_code()
    if current.code.java_script == wanted.java_script:
        return False
    current.code = wanted
    return True


def _update_timer(definition: TimerDefinition, current: Timer) -> bool:
    wanted = definition.code.to_code()
    if current.code.java_script == wanted.java_script and current.period == definition.period:
        return False
    current.code = wanted
    current.period = definition.period
    return True


def configure_sensor(template: ThingTemplate, thing: Thing, *, now: datetime | None = None) -> bool:
    """Apply *template* to *thing* in place, returning ``True`` if anything changed.

    *now* stamps newly created synthetic features (defaults to the current time).
    """
    stamp = now if now is not None else utcnow()
    reconciliation = thing.reconciliation

    results = [
        sync_entries(
            template.synthetics,
            thing.synthetic_state,
            lambda definition: SyntheticFeature(type=definition.to_type(), value=None, last_update=stamp),
            _update_synthetic,
            ordered=False,
        ),
        sync_entries(
            template.reconciliation.deleting,
            reconciliation.deleting,
            lambda definition: Deleting(code=definition.to_code()),
            _update_deleting,
        ),
        sync_entries(
            template.reconciliation.changed,
            reconciliation.changed,
            lambda definition: Changed(code=definition.to_code()),
            _update_changed,
        ),
        sync_entries(
            template.reconciliation.timers,
            reconciliation.timers,
            lambda definition: Timer(code=definition.code.to_code(), period=definition.period),
            _update_timer,
        ),
    ]
    return any(results)
