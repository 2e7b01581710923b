"""Shared types for possync.

This module defines enums used by the sync engine and its callers.
"""

from __future__ import annotations

from enum import Enum


class SyncPhase(str, Enum):
    """Phase of a sync operation.

    Attached to progress reports so a full sync can tell the caller
    whether it is currently pushing or pulling.
    """

    PUSH = "push"
    PULL = "pull"
