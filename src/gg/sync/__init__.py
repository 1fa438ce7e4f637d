"""Network-facing layer: credentials, transport, and the GitSync facade."""

from __future__ import annotations

from gg.sync.git_sync import GitSync
from gg.sync.transport import Transport

__all__ = ["GitSync", "Transport"]
