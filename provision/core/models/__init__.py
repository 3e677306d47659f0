"""
Domain models — types shared by the engine, actions, and the CLI.

All models are re-exported here for convenient access:

    from provision.core.models import Step, RunReport, Outcome, BackupRecord
"""

from provision.core.models.action import Receipt
from provision.core.models.backup import BackupRecord
from provision.core.models.config import ActionSpec, ProvisionConfig, Settings, StepSpec
from provision.core.models.report import Outcome, RunReport, StepResult
from provision.core.models.step import Direction, RunOptions, SatisfactionState, Step

__all__ = [
    # config.py
    "ActionSpec",
    # backup.py
    "BackupRecord",
    # step.py
    "Direction",
    # report.py
    "Outcome",
    "ProvisionConfig",
    # action.py
    "Receipt",
    "RunOptions",
    "RunReport",
    "SatisfactionState",
    "Settings",
    "Step",
    "StepResult",
    "StepSpec",
]
