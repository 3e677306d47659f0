"""
Receipt model — the result contract between the engine and actions.

Actions are asked to check, apply, or revert a step. Apply and revert
answer with a Receipt. A failed receipt is the normal way for an action
to report that the wrapped tool did not do its job; the executor turns
it into a ``failed`` outcome and keeps the tool's error text unmodified.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

ReceiptStatus = Literal["ok", "skipped", "failed"]


class Receipt(BaseModel):
    """What one apply or revert call did.

    ``output`` is shown to the operator, ``error`` becomes the failure
    reason, and ``metadata`` carries action-specific detail (command,
    path, attempt) for JSON output.
    """

    action: str
    step_id: str
    status: ReceiptStatus = "ok"
    output: str = ""
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(cls, action: str, step_id: str, output: str = "", **kwargs: Any) -> Receipt:
        return cls(action=action, step_id=step_id, output=output, **kwargs)

    @classmethod
    def failure(cls, action: str, step_id: str, error: str, **kwargs: Any) -> Receipt:
        return cls(action=action, step_id=step_id, status="failed", error=error, **kwargs)

    @classmethod
    def skip(cls, action: str, step_id: str, reason: str = "", **kwargs: Any) -> Receipt:
        """A no-op: the action found nothing to do (``reason`` becomes the output)."""
        return cls(action=action, step_id=step_id, status="skipped", output=reason, **kwargs)
