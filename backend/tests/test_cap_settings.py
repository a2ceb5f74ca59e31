"""Unit tests for server-side caps on client-provided session settings."""

from backend.app.main import _cap_settings
from backend.stepjs.session import ExecutionSession


def test_cap_settings_clamps():
    """Providing overly-large settings must be clamped to session defaults."""
    requested = {
        "max_steps": 10_000_000,
        "max_time_s": 10_000.0,
        "max_call_depth": 100_000,
        "max_call_steps": 10_000_000,
        "max_output_lines": 10_000_000,
        # behaviour switches pass through
        "strict": True,
        "seed": 42,
    }

    capped = _cap_settings(requested)
    defaults = ExecutionSession()

    assert capped["max_steps"] == defaults.max_steps
    assert capped["max_time_s"] == defaults.max_time_s
    assert capped["max_call_depth"] == defaults.max_call_depth
    assert capped["max_call_steps"] == defaults.max_call_steps
    assert capped["max_output_lines"] == defaults.max_output_lines
    assert capped["strict"] is True
    assert capped["seed"] == 42


def test_cap_settings_keeps_lower_values():
    capped = _cap_settings({"max_steps": 10, "max_time_s": 0.5})
    assert capped["max_steps"] == 10
    assert capped["max_time_s"] == 0.5


def test_cap_settings_without_settings():
    defaults = ExecutionSession()
    capped = _cap_settings(None)
    assert capped["max_steps"] == defaults.max_steps
    assert "strict" not in capped


def test_unknown_settings_are_dropped():
    capped = _cap_settings({"max_history": 10_000_000, "energy_per_op_J": 1.0})
    assert "max_history" not in capped
    assert "energy_per_op_J" not in capped
