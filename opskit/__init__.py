"""Idempotent AWS and Kubernetes provisioning helpers.

The package is split into three layers:

* **Core** - :mod:`opskit.provisioning` (create-or-skip with
  confirm-before-overwrite), :mod:`opskit.polling` (poll-until-ready with a
  timeout) and :mod:`opskit.formatting` (JSON-to-table rendering).
* **Adapters** - :mod:`opskit.aws` wraps boto3 clients and
  :mod:`opskit.k8s` wraps the ``kubectl``, ``kind`` and ``helm`` CLIs.
* **Flows** - :mod:`opskit.flows` composes the layers into the commands
  exposed by :mod:`opskit.cli`.

Quick example
-------------

    >>> from opskit.polling import poll_until
    >>> result = poll_until(lambda: "ACTIVE", {"ACTIVE"}, timeout=0, interval=5)
    >>> result.ready
    True

"""

from __future__ import annotations

from .errors import (
    ConfigError,
    CreateFailedError,
    OpsKitError,
    PrerequisiteError,
    RemoteCallError,
)
from .polling import PollResult, poll_until
from .provisioning import ProvisionOutcome, ProvisionResult, ensure

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "CreateFailedError",
    "OpsKitError",
    "PollResult",
    "PrerequisiteError",
    "ProvisionOutcome",
    "ProvisionResult",
    "RemoteCallError",
    "ensure",
    "__version__",
    "poll_until",
]
