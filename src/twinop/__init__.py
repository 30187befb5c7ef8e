"""twinop - keeps digital twin things in line with a device registry."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("twin-operator")
except PackageNotFoundError:
    __version__ = "0+local"
from twinop.client import ApiClients, RegistryClient, TwinClient
from twinop.config import OperatorConfig, ReconnectPolicy
from twinop.exceptions import (
    TwinOpApiError,
    TwinOpConfigError,
    TwinOpConflictError,
    TwinOpError,
    TwinOpEventBusError,
    TwinOpEventDecodeError,
    TwinOpNotFoundError,
    TwinOpRetryExhaustedError,
    TwinOpTemplateError,
    TwinOpTransportError,
)
from twinop.models import Device, Thing, ThingTemplate
from twinop.operator import Operator
from twinop.reconcile import Dispatcher, Outcome, TwinReconciler
from twinop.template import load_template, parse_template

__all__ = [
    "__version__",
    "ApiClients",
    "Device",
    "Dispatcher",
    "Operator",
    "OperatorConfig",
    "Outcome",
    "ReconnectPolicy",
    "RegistryClient",
    "Thing",
    "ThingTemplate",
    "TwinClient",
    "TwinOpApiError",
    "TwinOpConfigError",
    "TwinOpConflictError",
    "TwinOpError",
    "TwinOpEventBusError",
    "TwinOpEventDecodeError",
    "TwinOpNotFoundError",
    "TwinOpRetryExhaustedError",
    "TwinOpTemplateError",
    "TwinOpTransportError",
    "TwinReconciler",
    "load_template",
    "parse_template",
]
