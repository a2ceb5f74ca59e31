"""Expression evaluator for StepJS.

The evaluator walks the tuple trees produced by `parser.Parser`. It never
hands user text to Python's ``eval``: names resolve only through the scope
chain, the program's function registry and the fixed tables in
`builtins`, so no Python attribute or object is reachable from a program.
"""

import math
import random
from typing import Any, Callable, Dict, List, Optional

from .builtins import (
    GLOBAL_FUNCTIONS,
    NAMESPACE_CONSTANTS,
    NAMESPACES,
    STATIC_METHODS,
    method_table,
)
from .errors import JSReferenceError, JSTypeError
from .parser import Node, parse_expression_text
from .scope import Scope
from .values import (
    FunctionRef,
    arithmetic,
    compare,
    deep_copy,
    is_number,
    loose_equal,
    normalize_number,
    strict_equal,
    to_number,
    to_str,
    truthy,
    type_of,
    undefined,
)

GLOBAL_CONSTANTS = {"NaN": math.nan, "Infinity": math.inf}


def _describe(node: Node) -> str:
    """Source-like rendering of a callee for error messages."""
    kind = node[0]
    if kind == "name":
        return node[1]
    if kind == "member":
        return f"{_describe(node[1])}.{node[2]}"
    if kind == "index":
        return f"{_describe(node[1])}[...]"
    if kind == "call":
        return f"{_describe(node[1])}(...)"
    return "expression"


def get_property(obj: Any, key: str) -> Any:
    """Read ``obj[key]`` with JavaScript semantics for the supported types."""
    if obj is None or obj is undefined:
        raise JSTypeError(f"Cannot read properties of {to_str(obj)} (reading '{key}')")
    if isinstance(obj, (list, str)):
        if key == "length":
            return len(obj)
        if key.isdigit():
            index = int(key)
            return obj[index] if index < len(obj) else undefined
        return undefined
    if isinstance(obj, dict):
        return obj.get(key, undefined)
    return undefined


def property_key(key: Any) -> str:
    if is_number(key) and not isinstance(key, int) and float(key).is_integer():
        key = int(key)
    return to_str(key)


class Evaluator:
    """Evaluate expression trees against a `Scope`.

    Args:
        functions: the program's function registry (name -> FunctionDef).
        call: hook that runs a user function body, ``call(fn, args)``. Without
            it user functions can be referenced but not called.
        emit: receives each console output line.
        rng: random source behind ``Math.random``.
    """

    def __init__(
        self,
        functions: Optional[Dict[str, Any]] = None,
        *,
        call: Optional[Callable[[Any, List[Any]], Any]] = None,
        emit: Optional[Callable[[str], None]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.functions = functions if functions is not None else {}
        self.call = call
        self.output: List[str] = []
        self.emit = emit or self.output.append
        self.rng = rng or random.Random()
        self.dispatch_map = {
            "num": lambda node, scope: node[1],
            "str": lambda node, scope: node[1],
            "bool": lambda node, scope: node[1],
            "null": lambda node, scope: None,
            "undef": lambda node, scope: undefined,
            "tmpl": self._eval_template,
            "name": self._eval_name,
            "array": self._eval_array,
            "object": self._eval_object,
            "member": self._eval_member,
            "index": self._eval_index,
            "call": self._eval_call,
            "unary": self._eval_unary,
            "binary": self._eval_binary,
            "logical": self._eval_logical,
            "cond": self._eval_cond,
        }

    def evaluate(self, node: Node, scope: Scope) -> Any:
        handler = self.dispatch_map.get(node[0])
        if handler is None:
            raise JSTypeError(f"Unsupported expression '{node[0]}'")
        return handler(node, scope)

    # --- names ------------------------------------------------------------
    def _is_namespace(self, name: str, scope: Scope) -> bool:
        return name in NAMESPACES and not scope.has(name)

    def _eval_name(self, node, scope):
        name = node[1]
        if scope.has(name):
            return scope.lookup(name)
        if name in GLOBAL_CONSTANTS:
            return GLOBAL_CONSTANTS[name]
        if name in self.functions or name in GLOBAL_FUNCTIONS:
            return FunctionRef(name)
        if name in NAMESPACES:
            return dict(NAMESPACE_CONSTANTS.get(name, {}))
        raise JSReferenceError(f"{name} is not defined")

    # --- literals ---------------------------------------------------------
    def _eval_template(self, node, scope):
        return "".join(part if isinstance(part, str) else to_str(self.evaluate(part, scope)) for part in node[1])

    def _spread(self, node, scope) -> List[Any]:
        value = self.evaluate(node[1], scope)
        if isinstance(value, list):
            return deep_copy(value)
        if isinstance(value, str):
            return list(value)
        raise JSTypeError(f"{_describe(node[1])} is not iterable")

    def _eval_array(self, node, scope):
        out = []
        for item in node[1]:
            if item[0] == "spread":
                out.extend(self._spread(item, scope))
            else:
                out.append(deep_copy(self.evaluate(item, scope)))
        return out

    def _eval_object(self, node, scope):
        out: Dict[str, Any] = {}
        for kind, key, value_node in node[1]:
            if kind == "spread":
                value = self.evaluate(value_node, scope)
                if isinstance(value, dict):
                    out.update(deep_copy(value))
                elif isinstance(value, (list, str)):
                    out.update({str(i): deep_copy(v) for i, v in enumerate(value)})
                continue
            if kind == "computed":
                key = property_key(self.evaluate(key, scope))
            out[key] = deep_copy(self.evaluate(value_node, scope))
        return out

    # --- property access ----------------------------------------------------
    def _eval_member(self, node, scope):
        obj_node, prop = node[1], node[2]
        if obj_node[0] == "name" and self._is_namespace(obj_node[1], scope):
            ns = obj_node[1]
            constants = NAMESPACE_CONSTANTS.get(ns, {})
            if prop in constants:
                return constants[prop]
            if prop in STATIC_METHODS[ns]:
                return FunctionRef(f"{ns}.{prop}")
            return undefined
        return get_property(self.evaluate(obj_node, scope), prop)

    def _eval_index(self, node, scope):
        obj = self.evaluate(node[1], scope)
        key = self.evaluate(node[2], scope)
        return get_property(obj, property_key(key))

    # --- calls --------------------------------------------------------------
    def _eval_args(self, arg_nodes, scope) -> List[Any]:
        args: List[Any] = []
        for item in arg_nodes:
            if item[0] == "spread":
                args.extend(self._spread(item, scope))
            else:
                args.append(self.evaluate(item, scope))
        return args

    def _eval_call(self, node, scope):
        callee, arg_nodes = node[1], node[2]
        if callee[0] == "member":
            return self._call_method(callee, arg_nodes, scope)
        if callee[0] == "name" and not scope.has(callee[1]):
            name = callee[1]
            if name not in self.functions and name not in GLOBAL_FUNCTIONS:
                raise JSReferenceError(f"{name} is not defined")
            return self.invoke(FunctionRef(name), self._eval_args(arg_nodes, scope))
        fn = self.evaluate(callee, scope)
        if not isinstance(fn, FunctionRef):
            raise JSTypeError(f"{_describe(callee)} is not a function")
        return self.invoke(fn, self._eval_args(arg_nodes, scope))

    def _call_method(self, callee, arg_nodes, scope):
        obj_node, method = callee[1], callee[2]
        if obj_node[0] == "name" and self._is_namespace(obj_node[1], scope):
            fn = STATIC_METHODS[obj_node[1]].get(method)
            if fn is None:
                raise JSTypeError(f"{obj_node[1]}.{method} is not a function")
            return fn(self._eval_args(arg_nodes, scope), self)
        receiver = self.evaluate(obj_node, scope)
        if receiver is None or receiver is undefined:
            raise JSTypeError(f"Cannot read properties of {to_str(receiver)} (reading '{method}')")
        if isinstance(receiver, dict) and isinstance(receiver.get(method), FunctionRef):
            return self.invoke(receiver[method], self._eval_args(arg_nodes, scope))
        fn = method_table(receiver).get(method)
        if fn is None:
            raise JSTypeError(f"{_describe(callee)} is not a function")
        return fn(receiver, self._eval_args(arg_nodes, scope), self)

    def invoke(self, ref: FunctionRef, args: List[Any]) -> Any:
        """Call a function value: a user function or a builtin reference."""
        name = ref.name
        if name in self.functions:
            if self.call is None:
                raise JSTypeError(f"{name} cannot be called outside a running program")
            return self.call(self.functions[name], args)
        if name in GLOBAL_FUNCTIONS:
            return GLOBAL_FUNCTIONS[name](args, self)
        ns, _, method = name.partition(".")
        fn = STATIC_METHODS.get(ns, {}).get(method)
        if fn is None:
            raise JSTypeError(f"{name} is not a function")
        return fn(args, self)

    # --- operators ------------------------------------------------------------
    def _eval_unary(self, node, scope):
        op = node[1]
        if op == "typeof":
            try:
                return type_of(self.evaluate(node[2], scope))
            except JSReferenceError:
                return "undefined"
        value = self.evaluate(node[2], scope)
        if op == "!":
            return not truthy(value)
        if op == "-":
            return normalize_number(-to_number(value))
        return to_number(value)

    def _eval_binary(self, node, scope):
        op = node[1]
        left = self.evaluate(node[2], scope)
        right = self.evaluate(node[3], scope)
        if op == "===":
            return strict_equal(left, right)
        if op == "!==":
            return not strict_equal(left, right)
        if op == "==":
            return loose_equal(left, right)
        if op == "!=":
            return not loose_equal(left, right)
        if op in ("<", ">", "<=", ">="):
            return compare(op, left, right)
        return arithmetic(op, left, right)

    def _eval_logical(self, node, scope):
        op = node[1]
        left = self.evaluate(node[2], scope)
        if op == "&&":
            return self.evaluate(node[3], scope) if truthy(left) else left
        if op == "||":
            return left if truthy(left) else self.evaluate(node[3], scope)
        # ??
        if left is None or left is undefined:
            return self.evaluate(node[3], scope)
        return left

    def _eval_cond(self, node, scope):
        branch = node[2] if truthy(self.evaluate(node[1], scope)) else node[3]
        return self.evaluate(branch, scope)


def evaluate(expr: str, scope: Scope, **kwargs) -> Any:
    """Parse and evaluate `expr` in `scope`.

    Extra keyword arguments are passed to `Evaluator`. Raises an
    `InterpreterError` subclass on any fault.
    """
    return Evaluator(**kwargs).evaluate(parse_expression_text(expr), scope)
