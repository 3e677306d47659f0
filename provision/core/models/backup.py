"""
BackupRecord — one moved-aside path.

Created immediately before a destructive apply mutates a path. A later
backup of the same path produces a new record with a later timestamp.
The only field filled in after creation is ``written_digest``: the
fingerprint of what the step put in the path's place.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict


class BackupRecord(BaseModel):
    """Where a path's previous content was moved, and when."""

    model_config = ConfigDict(frozen=True)

    original_path: str
    backup_path: str
    created_at: datetime
    kind: Literal["file", "directory", "symlink"] = "file"
    step_id: str = ""
    written_digest: str | None = None

    @property
    def stamp(self) -> str:
        """Timestamp slot name, as used in the backup directory layout."""
        return self.created_at.strftime("%Y%m%d_%H%M%S_%f")
