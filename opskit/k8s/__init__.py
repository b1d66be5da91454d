"""Wrappers over the kubectl, kind and helm command-line tools."""

from __future__ import annotations

from . import helm, kind, kubectl, models

__all__ = ["helm", "kind", "kubectl", "models"]
