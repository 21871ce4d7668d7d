"""
Pure attachment rules: media-type allow-list, per-task quota, and storage
key disambiguation. No I/O; the orchestrator supplies every input.
"""
from __future__ import annotations

import os
import secrets
import time
from collections.abc import Iterable
from dataclasses import dataclass

from attachvault.core.config import AttachmentPolicy

_last_timestamp_ms = 0


def validate_media_type(media_type: str | None, policy: AttachmentPolicy) -> bool:
    """
    Return True if the declared media type is on the allow-list.
    The declared type is trusted as-is; file content is never sniffed.
    """
    if not media_type:
        return False
    return media_type in policy.allowed_media_types


@dataclass(frozen=True)
class QuotaCheck:
    ok: bool
    current_size: int
    attempted_size: int


def check_quota(
    current_total: int,
    incoming_sizes: Iterable[int],
    policy: AttachmentPolicy,
) -> QuotaCheck:
    """
    Decide whether a batch fits in the task's remaining quota.
    A batch landing exactly on the ceiling is accepted.
    """
    attempted = current_total + sum(incoming_sizes)
    return QuotaCheck(
        ok=attempted <= policy.quota_bytes,
        current_size=current_total,
        attempted_size=attempted,
    )


def _timestamp_ms() -> int:
    """Epoch milliseconds that never go backwards within this process."""
    global _last_timestamp_ms
    _last_timestamp_ms = max(_last_timestamp_ms, time.time_ns() // 1_000_000)
    return _last_timestamp_ms


def disambiguate(original_name: str) -> str:
    """
    Build a storage key of the form {base}_{timestamp_ms}_{random}{ext}.

    Two uploads with the same original name get different keys; no lookup
    is made to verify it.
    """
    name = os.path.basename(original_name.replace("\\", "/")).replace("\x00", "")
    base, extension = os.path.splitext(name)
    base = base or "file"
    return f"{base}_{_timestamp_ms()}_{secrets.token_hex(8)}{extension}"
