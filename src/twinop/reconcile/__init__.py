"""Reconciliation engine.

The :class:`Dispatcher` drives a :class:`Reconciler` (in production the
:class:`TwinReconciler`) to a terminal :class:`Outcome` for one device;
the template differencer in :mod:`twinop.reconcile.differ` keeps a
sensor Thing's declared sub-state in line with the thing template.
"""

from twinop.reconcile.differ import configure_sensor, sync_entries
from twinop.reconcile.dispatcher import Dispatcher
from twinop.reconcile.outcome import Outcome, Reconciler
from twinop.reconcile.twin import TwinReconciler

__all__ = [
    "Dispatcher",
    "Outcome",
    "Reconciler",
    "TwinReconciler",
    "configure_sensor",
    "sync_entries",
]
