"""
Tests for the install/cleanup/plan use cases with a custom action registry.
"""

import pytest

from provision.adapters.callable import CallableAction
from provision.adapters.registry import default_action_registry
from provision.core.engine.gate import ScriptedGate
from provision.core.errors import ConfirmationCancelled
from provision.core.models.report import Outcome
from provision.core.persistence.run_log import RunLog
from provision.core.use_cases.plan import list_steps, plan_run
from provision.core.use_cases.run import run_cleanup, run_install

CONFIG = """\
settings:
  stop_on_failure: false
  notes: [All done.]
steps:
  - id: flag
    action: {type: flag}
  - id: broken
    action: {type: shell, apply: "exit 4"}
  - id: needs-broken
    depends_on: broken
    action: {type: flag}
"""


@pytest.fixture
def flags() -> dict[str, bool]:
    return {}


@pytest.fixture
def actions(flags):
    """Built-in actions plus a 'flag' type backed by the flags dict."""
    state = flags
    registry = default_action_registry()

    def _flag() -> CallableAction:
        def apply(ctx):
            state[ctx.step_id] = True

        def revert(ctx):
            state.pop(ctx.step_id, None)

        return CallableAction(
            apply=apply,
            revert=revert,
            check=lambda ctx: state.get(ctx.step_id, False),
        )

    registry.register("flag", _flag)
    return registry


class TestRunInstall:
    def test_settings_continue_and_run_log(self, write_config, actions):
        config = write_config(CONFIG)

        result = run_install(config_path=config, actions=actions)

        report = result.report
        assert report.outcome_of("flag") == Outcome.APPLIED
        assert report.outcome_of("broken") == Outcome.FAILED
        assert report.get("needs-broken").reason == "blocked"
        assert not result.ok
        assert result.notes == []  # only after a clean install

        log = RunLog(config.parent / ".state" / "runs.ndjson")
        assert [e.step_id for e in log.read_all()] == ["flag", "broken", "needs-broken"]

    def test_notes_after_clean_install(self, write_config, actions):
        config = write_config(CONFIG)
        result = run_install(config_path=config, only=["flag"], actions=actions)
        assert result.ok
        assert result.notes == ["All done."]

    def test_config_error(self, write_config):
        config = write_config("steps: [{id: a, action: {type: nope}}]\n")
        result = run_install(config_path=config)
        assert result.report is None
        assert "Unknown action type 'nope'" in result.error
        assert result.to_dict() == {"error": result.error}


class TestRunCleanup:
    def test_confirmation_declined(self, write_config, actions, flags):
        config = write_config(CONFIG)
        run_install(config_path=config, only=["flag"], actions=actions)

        with pytest.raises(ConfirmationCancelled):
            run_cleanup(config_path=config, confirm=ScriptedGate([False]), actions=actions)

        assert flags == {"flag": True}

    def test_confirmation_accepted(self, write_config, actions, flags):
        config = write_config(CONFIG)
        run_install(config_path=config, only=["flag"], actions=actions)

        gate = ScriptedGate([True])
        result = run_cleanup(config_path=config, only=["flag"], confirm=gate, actions=actions)

        assert result.ok
        assert flags == {}
        assert len(gate.history) == 1


class TestPlan:
    def test_plan_and_list(self, write_config, actions):
        config = write_config(CONFIG)
        assert [s.id for s in plan_run(config, reverse=True, actions=actions).steps] == [
            "needs-broken", "broken", "flag",
        ]
        steps = list_steps(config, actions=actions)
        assert steps.to_dict()["steps"][1]["reversible"] is False
