"""Execution session: the command surface of the step-through debugger.

An `ExecutionSession` owns one loaded program and exposes the commands the
debugger UI drives: `initialize_code`, `step`, `step_back`, `run_to_end`,
`reset` and `replay`. After every command the session publishes a state
snapshot (variables, next line, output, completion, error) readable through
the `state` property.

Faults never escape as exceptions. Any `InterpreterError` raised while a
step runs becomes the terminal ``error`` of the published state; `step` and
`run_to_end` are no-ops from then on while `step_back` and `reset` stay
available.
"""

import copy
import logging
import random
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional

from .control import Activation
from .errors import InterpreterError, JSRangeError, OutputLimitExceeded
from .executor import StatementExecutor
from .program import Program, load_program
from .scope import Scope, extract_variables

logger = logging.getLogger(__name__)

SETTING_NAMES = (
    "max_steps",
    "max_time_s",
    "max_call_depth",
    "max_call_steps",
    "max_output_lines",
    "max_history",
    "strict",
    "seed",
)


@dataclass
class _Checkpoint:
    """Everything needed to put the session back to a pre-step state."""

    activation: Activation
    output_len: int
    warnings_len: int
    steps: int
    complete: bool
    previous_scope: Dict[str, Any]
    state: Dict[str, Any]
    rng_state: Any


class ExecutionSession:
    """Line-by-line execution of one StepJS program.

    Tunable attributes (defaults are set in __init__ and can be overridden
    with `apply_settings`):
    - max_steps, max_time_s: ceiling for `run_to_end`
    - max_call_depth, max_call_steps: recursion depth and per-step budget for
      user-function calls
    - max_output_lines: console lines before an OutputLimit error
    - max_history: checkpoints kept for `step_back`
    - strict: raise UnsupportedSyntax instead of warning on unknown statements
    - seed: seed of the random source behind ``Math.random``
    """

    def __init__(self, code: Optional[str] = None, settings: Optional[Dict[str, Any]] = None):
        # Safety limits
        self.max_steps = 10000
        self.max_time_s = 5.0
        self.max_call_depth = 50
        self.max_call_steps = 10000
        self.max_output_lines = 1000
        self.max_history = 10000
        # Behaviour
        self.strict = False
        self.seed = 0
        if settings:
            self.apply_settings(settings)
        self._state: Dict[str, Any] = {}
        self.initialize_code(code or "")

    def apply_settings(self, settings: Dict[str, Any]) -> None:
        for name in SETTING_NAMES:
            if settings.get(name) is not None:
                setattr(self, name, settings[name])

    # --- Error helpers -------------------------------------------------
    def _err(self, name: str, message: str, *, line: int, hint: Optional[str] = None) -> Dict[str, Any]:
        err: Dict[str, Any] = {"name": name, "message": message, "line": line}
        if hint:
            err["hint"] = hint
        return err

    def _fail(self, exc: InterpreterError, index: int) -> None:
        line = exc.line or self.program.line_of(index) + 1
        self.error = self._err(exc.name, exc.message, line=line, hint=exc.hint)
        self.failed_step = True
        logger.warning("step failed at line %d: %s: %s", line, exc.name, exc.message)
        # the failing line stays current until step_back or reset
        self._publish(current_line=line, call_stack=exc.call_stack)

    # --- internals -----------------------------------------------------
    def _new_executor(self) -> StatementExecutor:
        executor = StatementExecutor(
            self.program,
            emit=self._emit,
            rng=self.rng,
            max_call_depth=self.max_call_depth,
            max_call_steps=self.max_call_steps,
            strict=self.strict,
            warnings=self.warnings,
        )
        executor.activations = [self.global_act]
        return executor

    def _emit(self, line: str) -> None:
        if len(self.output) >= self.max_output_lines:
            raise OutputLimitExceeded(f"Output limit of {self.max_output_lines} lines reached")
        self.output.append(line)

    def _publish(self, current_line: Optional[int] = None, call_stack: Optional[List[str]] = None) -> None:
        if current_line is None:
            current_line = self.program.line_of(self.global_act.next_index())
        self._state = {
            "variables": extract_variables(self.global_act.scope.vars, self.previous_scope),
            "current_line": current_line,
            "call_stack": list(call_stack or self.executor.call_stack),
            "output": list(self.output),
            "is_complete": self.complete,
            "error": dict(self.error) if self.error else None,
            "warnings": list(self.warnings),
            "steps": self.steps,
        }

    def _checkpoint(self) -> None:
        self.history.append(
            _Checkpoint(
                activation=copy.deepcopy(self.global_act),
                output_len=len(self.output),
                warnings_len=len(self.warnings),
                steps=self.steps,
                complete=self.complete,
                previous_scope=self.previous_scope,
                state=self._state,
                rng_state=self.rng.getstate(),
            )
        )

    # --- commands --------------------------------------------------------
    @property
    def state(self) -> Dict[str, Any]:
        """A copy of the last published state; reading it changes nothing."""
        return copy.deepcopy(self._state)

    @property
    def line_count(self) -> int:
        return self.program.line_count

    def initialize_code(self, code: str) -> Dict[str, Any]:
        """Load `code` and clear all execution state."""
        self.code = code
        self.program: Program = load_program(code)
        self.output = []
        self.warnings = []
        self.error = None
        self.complete = False
        self.steps = 0
        self.failed_step = False
        self.previous_scope = {}
        self.history: Deque[_Checkpoint] = deque(maxlen=self.max_history)
        self.rng = random.Random(self.seed)
        self.global_act = Activation(label="global", scope=Scope())
        self.executor = self._new_executor()
        self._publish()
        logger.info(
            "session initialized: %d lines, %d instructions, %d functions",
            self.program.line_count,
            len(self.program),
            len(self.program.functions),
        )
        return self.state

    def step(self) -> bool:
        """Execute the next instruction; return whether instructions remain."""
        if self.error is not None:
            return False
        act = self.global_act
        act.resolve_skip()
        total = len(self.program)
        if act.ip >= total:
            self.complete = True
            self._publish()
            return False

        self._checkpoint()
        self.previous_scope = act.scope.snapshot()
        self.executor.call_steps = 0
        index = act.ip
        try:
            act.ip = self.executor.execute(act, index)
        except InterpreterError as e:
            self._fail(e, index)
            return False
        except RecursionError:
            self._fail(JSRangeError("Maximum call stack size exceeded"), index)
            return False
        self.steps += 1
        self.complete = act.next_index() >= total
        self._publish()
        logger.debug("step %d: line %d", self.steps, self.program.instructions[index].line + 1)
        return not self.complete

    def step_back(self) -> bool:
        """Undo the last step. Returns False when there was nothing to undo."""
        if not self.history:
            # older checkpoints fell off the bounded history: rebuild by replay
            target = self.steps if self.failed_step else self.steps - 1
            if target < 0:
                self.initialize_code(self.code)
                return False
            self.replay(target)
            return True
        cp = self.history.pop()
        self.global_act = cp.activation
        self.executor.activations = [self.global_act]
        del self.output[cp.output_len:]
        del self.warnings[cp.warnings_len:]
        self.steps = cp.steps
        self.complete = cp.complete
        self.error = None
        self.failed_step = False
        self.previous_scope = cp.previous_scope
        self.rng.setstate(cp.rng_state)
        self._state = cp.state
        return True

    def run_to_end(self) -> Dict[str, Any]:
        """Step until the program ends, faults, or hits the step/time ceiling."""
        if self.error is not None:
            return self.state
        started = time.time()
        steps = 0
        while True:
            if steps >= self.max_steps:
                self._timeout("Execution exceeded maximum steps (possible infinite loop)")
                break
            if time.time() - started > self.max_time_s:
                self._timeout("Execution exceeded time limit (possible infinite loop)")
                break
            if not self.step():
                break
            steps += 1
        return self.state

    def _timeout(self, message: str) -> None:
        line = self.program.line_of(self.global_act.next_index()) + 1
        self.error = self._err("Timeout", message, line=line)
        logger.warning("run stopped at line %d: %s", line, message)
        self._state = dict(self._state, error=dict(self.error))

    def reset(self) -> Dict[str, Any]:
        return self.initialize_code(self.code)

    def replay(self, steps: int) -> Dict[str, Any]:
        """Re-initialize and re-execute `steps` steps from the start.

        Execution is deterministic (the random source is seeded), so the
        result matches what `step_back` restores from history.
        """
        self.initialize_code(self.code)
        for _ in range(steps):
            if not self.step():
                break
        return self.state
