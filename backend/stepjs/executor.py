"""Statement executor: runs one instruction against an activation.

Each handler receives ``(act, i, stmt)`` and returns the index of the next
instruction. Forward jumps (skipping an untaken branch, leaving a loop) are
recorded as the activation's pending skip target and resolved before the
next instruction runs; loop re-entry assigns the pointer directly.

User-defined functions run synchronously: `call_function` pushes a new
`Activation` and drives the same handlers until the body returns or reaches
its closing brace.
"""

import logging
import math
from typing import Any, Callable, Dict, List, Optional

from .builtins import MAX_ARRAY_LENGTH
from .control import Activation, BranchFrame, LoopFrame
from .errors import (
    InterpreterError,
    JSRangeError,
    JSSyntaxError,
    JSTypeError,
    StepLimitExceeded,
    UnsupportedSyntax,
)
from .evaluator import Evaluator, property_key
from .program import FunctionDef, Program
from .scope import Scope
from .values import arithmetic, deep_copy, is_number, to_number, to_str, truthy, undefined

logger = logging.getLogger(__name__)


class StatementExecutor:
    """Execute program instructions and user-function calls.

    The executor owns the activation stack. The global activation is created
    by the session and stays at the bottom; `call_function` pushes and pops
    the others within a single step.
    """

    def __init__(
        self,
        program: Program,
        *,
        emit: Callable[[str], None],
        rng=None,
        max_call_depth: int = 50,
        max_call_steps: int = 10000,
        strict: bool = False,
        warnings: Optional[List[str]] = None,
    ):
        self.program = program
        self.max_call_depth = max_call_depth
        self.max_call_steps = max_call_steps
        self.strict = strict
        self.warnings: List[str] = warnings if warnings is not None else []
        self.activations: List[Activation] = []
        # instructions executed inside calls during the current step
        self.call_steps = 0
        self.evaluator = Evaluator(program.functions, call=self.call_function, emit=emit, rng=rng)
        self.dispatch_map: Dict[str, Callable[[Activation, int, tuple], int]] = {
            "noop": self._handle_noop,
            "block": self._handle_noop,
            "close": self._handle_close,
            "function": self._handle_function,
            "return": self._handle_return,
            "declare": self._handle_declare,
            "destructure": self._handle_destructure,
            "assign": self._handle_assign,
            "update": self._handle_update,
            "compound": self._handle_compound,
            "for": self._handle_for,
            "for_of": self._handle_for_of,
            "while": self._handle_while,
            "if": self._handle_if,
            "if_inline": self._handle_if_inline,
            "else": self._handle_else,
            "break": self._handle_break,
            "continue": self._handle_continue,
            "call": self._handle_expr,
            "expr": self._handle_expr,
            "unsupported": self._handle_unsupported,
            "invalid": self._handle_invalid,
        }

    @property
    def call_stack(self) -> List[str]:
        return [act.label for act in self.activations]

    def eval(self, node, act: Activation) -> Any:
        return self.evaluator.evaluate(node, act.scope)

    def execute(self, act: Activation, index: int) -> int:
        """Run instruction `index` in `act`; return the next index."""
        instr = self.program.instructions[index]
        try:
            return self.dispatch_map[instr.kind](act, index, instr.stmt)
        except InterpreterError as e:
            if e.line is None:
                e.line = instr.line + 1
            if e.call_stack is None:
                e.call_stack = self.call_stack
            raise
        except RecursionError:
            # deep recursion under a large max_call_depth: report the
            # innermost activation that still has room to build the error
            err = JSRangeError("Maximum call stack size exceeded", line=instr.line + 1)
            err.call_stack = self.call_stack
            raise err

    # --- functions ---------------------------------------------------------
    def call_function(self, fn: FunctionDef, args: List[Any]) -> Any:
        if len(self.activations) > self.max_call_depth:
            raise JSRangeError("Maximum call stack size exceeded")
        # no closures: a body sees its parameters, then the globals
        scope = Scope(parent=self.activations[0].scope)
        for idx, param in enumerate(fn.params):
            scope.declare(param, args[idx] if idx < len(args) else undefined)
        act = Activation(label=f"{fn.name}()", scope=scope, ip=fn.start + 1, function=fn)
        self.activations.append(act)
        try:
            while True:
                act.resolve_skip()
                if act.returned or act.ip >= fn.end:
                    break
                self.call_steps += 1
                if self.call_steps > self.max_call_steps:
                    raise StepLimitExceeded(
                        f"Function '{fn.name}' exceeded {self.max_call_steps} steps (possible infinite loop)"
                    )
                act.ip = self.execute(act, act.ip)
        finally:
            self.activations.pop()
        return act.return_value

    # --- simple statements -------------------------------------------------
    def _handle_noop(self, act, i, stmt):
        return i + 1

    def _handle_expr(self, act, i, stmt):
        self.eval(stmt[1], act)
        return i + 1

    def _handle_declare(self, act, i, stmt):
        _, kind, decls = stmt
        const = kind == "const"
        for target, init in decls:
            value = undefined if init is None else self.eval(init, act)
            if target[0] == "name":
                act.scope.declare(target[1], value, const=const)
                continue
            items = self._iterable(value)
            for idx, name in enumerate(target[1]):
                if name is not None:
                    act.scope.declare(name, items[idx] if idx < len(items) else undefined, const=const)
        return i + 1

    def _handle_destructure(self, act, i, stmt):
        _, targets, expr = stmt
        # the whole right side is evaluated before any store so swaps are exact
        items = deep_copy(self._iterable(self.eval(expr, act)))
        for idx, target in enumerate(targets):
            self._assign_to(act, target, items[idx] if idx < len(items) else undefined)
        return i + 1

    def _handle_assign(self, act, i, stmt):
        _, target, expr = stmt
        self._assign_to(act, target, self.eval(expr, act))
        return i + 1

    def _handle_update(self, act, i, stmt):
        _, op, target = stmt
        current = to_number(self.eval(target, act))
        self._assign_to(act, target, arithmetic("+" if op == "++" else "-", current, 1))
        return i + 1

    def _handle_compound(self, act, i, stmt):
        _, op, target, expr = stmt
        current = self.eval(target, act)
        self._assign_to(act, target, arithmetic(op, current, self.eval(expr, act)))
        return i + 1

    def _handle_return(self, act, i, stmt):
        value = undefined if stmt[1] is None else self.eval(stmt[1], act)
        if act.function is None:
            act.scope.declare("__return__", value)
            return i + 1
        act.returned = True
        act.return_value = value
        return i + 1

    def _handle_unsupported(self, act, i, stmt):
        instr = self.program.instructions[i]
        if self.strict:
            raise UnsupportedSyntax(f"Unsupported statement: {instr.text}", hint=stmt[1])
        message = f"Line {instr.line + 1}: unsupported statement ignored: {instr.text}"
        self.warnings.append(message)
        logger.warning(message)
        if instr.opens and i in self.program.match:
            # ignore the whole block it opens
            act.skip_to(self.program.match[i] + 1)
        return i + 1

    def _handle_invalid(self, act, i, stmt):
        raise JSSyntaxError(stmt[1])

    # --- assignment helpers --------------------------------------------------
    def _iterable(self, value) -> List[Any]:
        if isinstance(value, list):
            return value
        if isinstance(value, str):
            return list(value)
        raise JSTypeError(f"{to_str(value)} is not iterable")

    def _assign_to(self, act: Activation, target, value) -> None:
        kind = target[0]
        if kind == "name":
            act.scope.assign(target[1], value)
            return
        obj = self.eval(target[1], act)
        key = target[2] if kind == "member" else self.eval(target[2], act)
        self._store(obj, key, value)

    def _store(self, obj, key, value) -> None:
        name = property_key(key)
        if obj is None or obj is undefined:
            raise JSTypeError(f"Cannot set properties of {to_str(obj)} (setting '{name}')")
        if isinstance(obj, list):
            if name.isdigit():
                index = int(name)
                if index >= MAX_ARRAY_LENGTH:
                    raise JSRangeError("Invalid array length")
                if index >= len(obj):
                    obj.extend([undefined] * (index - len(obj) + 1))
                obj[index] = deep_copy(value)
            elif name == "length":
                self._set_length(obj, value)
            return
        if isinstance(obj, dict):
            obj[name] = deep_copy(value)
        # writes to primitives are ignored

    def _set_length(self, arr: List[Any], value) -> None:
        length = to_number(value)
        if not is_number(length) or math.isnan(length) or length < 0 or length != int(length) or length >= MAX_ARRAY_LENGTH:
            raise JSRangeError("Invalid array length")
        length = int(length)
        if length < len(arr):
            del arr[length:]
        else:
            arr.extend([undefined] * (length - len(arr)))

    # --- blocks --------------------------------------------------------------
    def _handle_function(self, act, i, stmt):
        # declarations were registered at load time; step over the body
        act.skip_to(self.program.block_end(i))
        return i + 1

    def _handle_close(self, act, i, stmt):
        opener = self.program.opener_of.get(i)
        top = act.top_frame()
        if isinstance(top, LoopFrame) and top.opener == opener:
            return self._loop_back(act, top, i)
        if isinstance(top, BranchFrame) and top.opener == opener:
            # keep the frame when an else clause follows
            if opener not in self.program.chain_next:
                act.frames.pop()
        return i + 1

    def _loop_back(self, act: Activation, frame: LoopFrame, i: int) -> int:
        if frame.kind == "for_of":
            frame.position += 1
            if frame.position < len(frame.items):
                self._bind_loop_target(act, frame)
                return frame.opener + 1
            act.frames.pop()
            return i + 1
        if frame.update is not None:
            self.dispatch_map[frame.update[0]](act, frame.opener, frame.update)
        if frame.cond is None or truthy(self.eval(frame.cond, act)):
            return frame.opener + 1
        act.frames.pop()
        return i + 1

    def _enter_loop(self, act, i, frame: LoopFrame, end: int, enter: bool) -> int:
        if enter:
            act.frames.append(frame)
        else:
            # the closing brace runs as a no-op since no frame owns it
            act.skip_to(end)
        return i + 1

    def _handle_for(self, act, i, stmt):
        _, init, cond, update = stmt
        end = self.program.block_end(i)
        if init is not None:
            self.dispatch_map[init[0]](act, i, init)
        enter = cond is None or truthy(self.eval(cond, act))
        return self._enter_loop(act, i, LoopFrame(i, "for", cond=cond, update=update), end, enter)

    def _handle_while(self, act, i, stmt):
        end = self.program.block_end(i)
        enter = truthy(self.eval(stmt[1], act))
        return self._enter_loop(act, i, LoopFrame(i, "while", cond=stmt[1]), end, enter)

    def _handle_for_of(self, act, i, stmt):
        _, decl, name, mode, iterable = stmt
        end = self.program.block_end(i)
        value = self.eval(iterable, act)
        if mode == "of":
            items = list(self._iterable(value))
        elif isinstance(value, dict):
            items = list(value.keys())
        elif isinstance(value, (list, str)):
            items = [str(idx) for idx in range(len(value))]
        else:
            items = []
        frame = LoopFrame(i, "for_of", items=items, target=name, decl=decl)
        if items:
            self._bind_loop_target(act, frame)
        return self._enter_loop(act, i, frame, end, bool(items))

    def _bind_loop_target(self, act: Activation, frame: LoopFrame) -> None:
        value = frame.items[frame.position]
        if frame.decl is not None:
            act.scope.declare(frame.target, value, const=frame.decl == "const")
        else:
            act.scope.assign(frame.target, value)

    def _handle_if(self, act, i, stmt):
        end = self.program.block_end(i)
        if truthy(self.eval(stmt[1], act)):
            act.frames.append(BranchFrame(i, taken=True))
        elif i in self.program.chain_next:
            # stop on the closing brace so the else clause is reached
            act.frames.append(BranchFrame(i, taken=False))
            act.skip_to(end)
        else:
            act.skip_to(end + 1)
        return i + 1

    def _handle_if_inline(self, act, i, stmt):
        _, cond, body = stmt
        if truthy(self.eval(cond, act)):
            return self.dispatch_map[body[0]](act, i, body)
        return i + 1

    def _handle_else(self, act, i, stmt):
        cond = stmt[1]
        prev = self.program.chain_prev.get(i)
        top = act.top_frame()
        if prev is None or not isinstance(top, BranchFrame) or top.opener != prev:
            raise JSSyntaxError("Unexpected token 'else'")
        end = self.program.block_end(i)
        if top.taken:
            act.frames.pop()
            act.skip_to(self.program.chain_end(i) + 1)
            return i + 1
        top.opener = i
        if cond is None or truthy(self.eval(cond, act)):
            top.taken = True
        elif i in self.program.chain_next:
            act.skip_to(end)
        else:
            act.frames.pop()
            act.skip_to(end + 1)
        return i + 1

    def _handle_break(self, act, i, stmt):
        loop = self._unwind_to_loop(act, "Illegal break statement")
        act.frames.pop()
        act.skip_to(self.program.block_end(loop.opener) + 1)
        return i + 1

    def _handle_continue(self, act, i, stmt):
        loop = self._unwind_to_loop(act, "Illegal continue statement: no surrounding iteration statement")
        act.skip_to(self.program.block_end(loop.opener))
        return i + 1

    def _unwind_to_loop(self, act: Activation, message: str) -> LoopFrame:
        """Pop frames above the innermost loop and return that loop."""
        loop = act.innermost_loop()
        if loop is None:
            raise JSSyntaxError(message)
        while act.frames[-1] is not loop:
            act.frames.pop()
        return loop
