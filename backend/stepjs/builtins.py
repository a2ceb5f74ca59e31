"""Builtin objects and methods available to StepJS programs.

Only a fixed table of names is reachable from a program: the global
functions, the `NAMESPACES` objects (``console``, ``Math``, ...) and the
methods on arrays, strings, numbers and plain objects. Every callable takes
``(args, ev)`` or ``(receiver, args, ev)`` where `ev` is the running
`Evaluator`, which provides `emit` for console output, `invoke` for calling
user functions passed as callbacks, and the session's seeded `rng`.

Array mutators work on the receiver in place, so ``arr.push(x)`` updates the
binding that holds ``arr``.
"""

import functools
import json
import math
import re
from typing import Any, Callable, Dict, List

from .errors import JSRangeError, JSSyntaxError, JSTypeError
from .values import (
    FunctionRef,
    console_format,
    deep_copy,
    format_number,
    from_json,
    is_number,
    normalize_number,
    power,
    stringify,
    strict_equal,
    to_number,
    to_str,
    truthy,
    undefined,
)


MAX_STRING_LENGTH = 2 ** 24
MAX_ARRAY_LENGTH = 2 ** 24


def _arg(args: List[Any], i: int, default: Any = undefined) -> Any:
    return args[i] if i < len(args) else default


def _int_arg(args: List[Any], i: int, default: int) -> int:
    value = _arg(args, i)
    if value is undefined:
        return default
    number = to_number(value)
    if math.isnan(number):
        return 0
    if math.isinf(number):
        return int(math.copysign(2 ** 53, number))
    return int(number)


def _relative_index(index: int, length: int) -> int:
    if index < 0:
        return max(length + index, 0)
    return min(index, length)


def _callback(fn: Any) -> FunctionRef:
    if not isinstance(fn, FunctionRef):
        raise JSTypeError(f"{to_str(fn)} is not a function")
    return fn


def _same_value_zero(a: Any, b: Any) -> bool:
    if is_number(a) and is_number(b) and math.isnan(a) and math.isnan(b):
        return True
    return strict_equal(a, b)


# --- console --------------------------------------------------------------

def _console_log(args, ev):
    ev.emit(" ".join(console_format(a) for a in args))
    return undefined


# --- Math -----------------------------------------------------------------

def _math_unary(fn: Callable[[float], float]) -> Callable:
    def call(args, ev):
        x = to_number(_arg(args, 0))
        if math.isnan(x):
            return math.nan
        try:
            return normalize_number(fn(x))
        except (ValueError, OverflowError):
            return math.nan
    return call


def _js_round(x: float) -> float:
    if math.isinf(x):
        return x
    return math.floor(x + 0.5)


def _js_log(x: float) -> float:
    if x == 0:
        return -math.inf
    if x < 0:
        return math.nan
    return math.log(x)


def _js_sqrt(x: float) -> float:
    return math.nan if x < 0 else math.sqrt(x)


def _js_sign(x: float) -> float:
    return (x > 0) - (x < 0)


def _js_cbrt(x: float) -> float:
    return math.copysign(abs(x) ** (1.0 / 3.0), x)


def _math_extreme(pick: Callable, empty: float) -> Callable:
    def call(args, ev):
        numbers = [to_number(a) for a in args]
        if any(math.isnan(n) for n in numbers):
            return math.nan
        return pick(numbers) if numbers else empty
    return call


def _math_pow(args, ev):
    return power(_arg(args, 0), _arg(args, 1))


def _math_random(args, ev):
    return ev.rng.random()


def _math_hypot(args, ev):
    return normalize_number(math.hypot(*[to_number(a) for a in args])) if args else 0


def _math_atan2(args, ev):
    return normalize_number(math.atan2(to_number(_arg(args, 0)), to_number(_arg(args, 1))))


MATH_FUNCTIONS: Dict[str, Callable] = {
    "floor": _math_unary(lambda x: x if math.isinf(x) else math.floor(x)),
    "ceil": _math_unary(lambda x: x if math.isinf(x) else math.ceil(x)),
    "round": _math_unary(_js_round),
    "trunc": _math_unary(lambda x: x if math.isinf(x) else math.trunc(x)),
    "abs": _math_unary(abs),
    "sqrt": _math_unary(_js_sqrt),
    "cbrt": _math_unary(_js_cbrt),
    "sign": _math_unary(_js_sign),
    "log": _math_unary(_js_log),
    "log2": _math_unary(lambda x: _js_log(x) / math.log(2) if x > 0 else _js_log(x)),
    "log10": _math_unary(lambda x: _js_log(x) / math.log(10) if x > 0 else _js_log(x)),
    "exp": _math_unary(math.exp),
    "sin": _math_unary(math.sin),
    "cos": _math_unary(math.cos),
    "tan": _math_unary(math.tan),
    "pow": _math_pow,
    "min": _math_extreme(min, math.inf),
    "max": _math_extreme(max, -math.inf),
    "random": _math_random,
    "hypot": _math_hypot,
    "atan2": _math_atan2,
}

NAMESPACE_CONSTANTS: Dict[str, Dict[str, Any]] = {
    "Math": {
        "PI": math.pi,
        "E": math.e,
        "LN2": math.log(2),
        "LN10": math.log(10),
        "LOG2E": 1 / math.log(2),
        "LOG10E": 1 / math.log(10),
        "SQRT2": math.sqrt(2),
    },
    "Number": {
        "MAX_SAFE_INTEGER": 2 ** 53 - 1,
        "MIN_SAFE_INTEGER": -(2 ** 53 - 1),
        "EPSILON": 2.0 ** -52,
        "POSITIVE_INFINITY": math.inf,
        "NEGATIVE_INFINITY": -math.inf,
    },
}


# --- globals --------------------------------------------------------------

_INT_PREFIX = re.compile(r"^\s*([+-]?)([0-9a-zA-Z]+)")
_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:Infinity|\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?))")


def _parse_int(args, ev):
    text = to_str(_arg(args, 0))
    radix = _int_arg(args, 1, 10) or 10
    if radix < 2 or radix > 36:
        return math.nan
    match = _INT_PREFIX.match(text)
    if not match:
        return math.nan
    sign, digits = match.groups()
    if radix == 16 and digits.lower().startswith("0x"):
        digits = digits[2:]
    valid = ""
    for ch in digits:
        if int(ch, 36) >= radix:
            break
        valid += ch
    if not valid:
        return math.nan
    value = int(valid, radix)
    return normalize_number(-value if sign == "-" else value)


def _parse_float(args, ev):
    match = _FLOAT_PREFIX.match(to_str(_arg(args, 0)))
    if not match:
        return math.nan
    return to_number(match.group(1))


GLOBAL_FUNCTIONS: Dict[str, Callable] = {
    "parseInt": _parse_int,
    "parseFloat": _parse_float,
    "Number": lambda args, ev: to_number(args[0]) if args else 0,
    "String": lambda args, ev: to_str(args[0]) if args else "",
    "Boolean": lambda args, ev: truthy(_arg(args, 0)),
    "isNaN": lambda args, ev: math.isnan(to_number(_arg(args, 0))),
    "isFinite": lambda args, ev: math.isfinite(to_number(_arg(args, 0))),
}


# --- Object / Array / JSON / Number statics --------------------------------

def _keys(value: Any) -> List[str]:
    if isinstance(value, dict):
        return list(value.keys())
    if isinstance(value, (list, str)):
        return [str(i) for i in range(len(value))]
    if value is None or value is undefined:
        raise JSTypeError("Cannot convert undefined or null to object")
    return []


def _object_values(args, ev):
    target = _arg(args, 0)
    if isinstance(target, dict):
        return [deep_copy(v) for v in target.values()]
    if isinstance(target, list):
        return deep_copy(target)
    if isinstance(target, str):
        return list(target)
    _keys(target)
    return []


def _object_entries(args, ev):
    target = _arg(args, 0)
    keys = _keys(target)
    values = _object_values(args, ev)
    return [[k, v] for k, v in zip(keys, values)]


def _array_from(args, ev):
    source = _arg(args, 0)
    mapper = _arg(args, 1)
    if isinstance(source, list):
        items = deep_copy(source)
    elif isinstance(source, str):
        items = list(source)
    elif isinstance(source, dict) and "length" in source:
        length = to_number(source["length"])
        if math.isnan(length) or length < 0:
            length = 0
        if length >= MAX_ARRAY_LENGTH:
            raise JSRangeError("Invalid array length")
        items = [undefined] * int(length)
    else:
        items = []
    if mapper is not undefined:
        fn = _callback(mapper)
        items = [ev.invoke(fn, [v, i]) for i, v in enumerate(items)]
    return items


def _json_parse(args, ev):
    try:
        return from_json(json.loads(to_str(_arg(args, 0))))
    except ValueError as e:
        raise JSSyntaxError(f"Unexpected token in JSON: {e.msg}")


STATIC_METHODS: Dict[str, Dict[str, Callable]] = {
    "console": {
        "log": _console_log,
        "info": _console_log,
        "debug": _console_log,
        "warn": _console_log,
        "error": _console_log,
    },
    "Math": MATH_FUNCTIONS,
    "Object": {
        "keys": lambda args, ev: _keys(_arg(args, 0)),
        "values": _object_values,
        "entries": _object_entries,
    },
    "Array": {
        "isArray": lambda args, ev: isinstance(_arg(args, 0), list),
        "from": _array_from,
        "of": lambda args, ev: deep_copy(list(args)),
    },
    "JSON": {
        "stringify": lambda args, ev: stringify(_arg(args, 0)),
        "parse": _json_parse,
    },
    "Number": {
        "isInteger": lambda args, ev: is_number(_arg(args, 0)) and math.isfinite(args[0]) and float(args[0]).is_integer(),
        "isNaN": lambda args, ev: is_number(_arg(args, 0)) and math.isnan(args[0]),
        "parseInt": _parse_int,
        "parseFloat": _parse_float,
    },
}

NAMESPACES = frozenset(STATIC_METHODS)


# --- array methods --------------------------------------------------------

def _array_push(arr, args, ev):
    arr.extend(deep_copy(a) for a in args)
    return len(arr)


def _array_pop(arr, args, ev):
    return arr.pop() if arr else undefined


def _array_shift(arr, args, ev):
    return arr.pop(0) if arr else undefined


def _array_unshift(arr, args, ev):
    arr[0:0] = [deep_copy(a) for a in args]
    return len(arr)


def _array_slice(arr, args, ev):
    start = _relative_index(_int_arg(args, 0, 0), len(arr))
    end = _relative_index(_int_arg(args, 1, len(arr)), len(arr))
    return deep_copy(arr[start:end])


def _array_splice(arr, args, ev):
    start = _relative_index(_int_arg(args, 0, 0), len(arr))
    count = len(arr) - start if len(args) < 2 else max(0, min(_int_arg(args, 1, 0), len(arr) - start))
    removed = arr[start : start + count]
    arr[start : start + count] = [deep_copy(a) for a in args[2:]]
    return removed


def _array_concat(arr, args, ev):
    out = deep_copy(arr)
    for a in args:
        if isinstance(a, list):
            out.extend(deep_copy(a))
        else:
            out.append(deep_copy(a))
    return out


def _array_join(arr, args, ev):
    sep = _arg(args, 0)
    sep = "," if sep is undefined else to_str(sep)
    return sep.join("" if v is None or v is undefined else to_str(v) for v in arr)


def _array_index_of(arr, args, ev):
    target = _arg(args, 0)
    start = _relative_index(_int_arg(args, 1, 0), len(arr))
    for i in range(start, len(arr)):
        if strict_equal(arr[i], target):
            return i
    return -1


def _array_includes(arr, args, ev):
    target = _arg(args, 0)
    return any(_same_value_zero(v, target) for v in arr)


def _array_reverse(arr, args, ev):
    arr.reverse()
    return arr


def _default_sort_key(value):
    # undefined sorts last, everything else by its string form
    return (value is undefined, "" if value is undefined else to_str(value))


def _array_sort(arr, args, ev):
    comparator = _arg(args, 0)
    if comparator is undefined:
        arr.sort(key=_default_sort_key)
        return arr
    fn = _callback(comparator)

    def compare(a, b):
        result = to_number(ev.invoke(fn, [a, b]))
        if math.isnan(result) or result == 0:
            return 0
        return -1 if result < 0 else 1

    arr.sort(key=functools.cmp_to_key(compare))
    return arr


def _array_fill(arr, args, ev):
    value = _arg(args, 0)
    start = _relative_index(_int_arg(args, 1, 0), len(arr))
    end = _relative_index(_int_arg(args, 2, len(arr)), len(arr))
    for i in range(start, end):
        arr[i] = deep_copy(value)
    return arr


def _sequence_at(seq, args, ev):
    index = _int_arg(args, 0, 0)
    if index < 0:
        index += len(seq)
    if 0 <= index < len(seq):
        return seq[index]
    return undefined


def _array_map(arr, args, ev):
    fn = _callback(_arg(args, 0))
    return [ev.invoke(fn, [v, i, arr]) for i, v in enumerate(list(arr))]


def _array_filter(arr, args, ev):
    fn = _callback(_arg(args, 0))
    return [deep_copy(v) for i, v in enumerate(list(arr)) if truthy(ev.invoke(fn, [v, i, arr]))]


def _array_for_each(arr, args, ev):
    fn = _callback(_arg(args, 0))
    for i, v in enumerate(list(arr)):
        ev.invoke(fn, [v, i, arr])
    return undefined


def _array_reduce(arr, args, ev):
    fn = _callback(_arg(args, 0))
    items = list(arr)
    if len(args) >= 2:
        acc = args[1]
        start = 0
    elif items:
        acc = items[0]
        start = 1
    else:
        raise JSTypeError("Reduce of empty array with no initial value")
    for i in range(start, len(items)):
        acc = ev.invoke(fn, [acc, items[i], i, arr])
    return acc


def _array_find(arr, args, ev):
    fn = _callback(_arg(args, 0))
    for i, v in enumerate(list(arr)):
        if truthy(ev.invoke(fn, [v, i, arr])):
            return v
    return undefined


def _array_find_index(arr, args, ev):
    fn = _callback(_arg(args, 0))
    for i, v in enumerate(list(arr)):
        if truthy(ev.invoke(fn, [v, i, arr])):
            return i
    return -1


def _array_some(arr, args, ev):
    fn = _callback(_arg(args, 0))
    return any(truthy(ev.invoke(fn, [v, i, arr])) for i, v in enumerate(list(arr)))


def _array_every(arr, args, ev):
    fn = _callback(_arg(args, 0))
    return all(truthy(ev.invoke(fn, [v, i, arr])) for i, v in enumerate(list(arr)))


ARRAY_METHODS: Dict[str, Callable] = {
    "push": _array_push,
    "pop": _array_pop,
    "shift": _array_shift,
    "unshift": _array_unshift,
    "slice": _array_slice,
    "splice": _array_splice,
    "concat": _array_concat,
    "join": _array_join,
    "indexOf": _array_index_of,
    "includes": _array_includes,
    "reverse": _array_reverse,
    "sort": _array_sort,
    "fill": _array_fill,
    "at": _sequence_at,
    "toString": lambda arr, args, ev: to_str(arr),
    "map": _array_map,
    "filter": _array_filter,
    "forEach": _array_for_each,
    "reduce": _array_reduce,
    "find": _array_find,
    "findIndex": _array_find_index,
    "some": _array_some,
    "every": _array_every,
}


# --- string methods -------------------------------------------------------

def _string_split(s, args, ev):
    sep = _arg(args, 0)
    if sep is undefined:
        return [s]
    sep = to_str(sep)
    if sep == "":
        return list(s)
    return s.split(sep)


def _string_slice(s, args, ev):
    start = _relative_index(_int_arg(args, 0, 0), len(s))
    end = _relative_index(_int_arg(args, 1, len(s)), len(s))
    return s[start:end]


def _string_substring(s, args, ev):
    start = min(max(_int_arg(args, 0, 0), 0), len(s))
    end = min(max(_int_arg(args, 1, len(s)), 0), len(s))
    if start > end:
        start, end = end, start
    return s[start:end]


def _string_char_at(s, args, ev):
    index = _int_arg(args, 0, 0)
    return s[index] if 0 <= index < len(s) else ""


def _string_char_code_at(s, args, ev):
    index = _int_arg(args, 0, 0)
    return ord(s[index]) if 0 <= index < len(s) else math.nan


def _string_repeat(s, args, ev):
    count = _int_arg(args, 0, 0)
    if count < 0:
        raise JSRangeError(f"Invalid count value: {count}")
    if len(s) * count > MAX_STRING_LENGTH:
        raise JSRangeError("Invalid string length")
    return s * count


def _string_pad(at_start: bool) -> Callable:
    def call(s, args, ev):
        width = _int_arg(args, 0, 0)
        fill = _arg(args, 1)
        fill = " " if fill is undefined else to_str(fill)
        if width <= len(s) or not fill:
            return s
        if width > MAX_STRING_LENGTH:
            raise JSRangeError("Invalid string length")
        pad = (fill * (width - len(s)))[: width - len(s)]
        return pad + s if at_start else s + pad
    return call


def _string_replace(s, args, ev):
    return s.replace(to_str(_arg(args, 0)), to_str(_arg(args, 1)), 1)


STRING_METHODS: Dict[str, Callable] = {
    "toLowerCase": lambda s, args, ev: s.lower(),
    "toUpperCase": lambda s, args, ev: s.upper(),
    "trim": lambda s, args, ev: s.strip(),
    "split": _string_split,
    "charAt": _string_char_at,
    "charCodeAt": _string_char_code_at,
    "substring": _string_substring,
    "slice": _string_slice,
    "indexOf": lambda s, args, ev: s.find(to_str(_arg(args, 0)), _relative_index(_int_arg(args, 1, 0), len(s))),
    "includes": lambda s, args, ev: to_str(_arg(args, 0)) in s,
    "startsWith": lambda s, args, ev: s.startswith(to_str(_arg(args, 0))),
    "endsWith": lambda s, args, ev: s.endswith(to_str(_arg(args, 0))),
    "repeat": _string_repeat,
    "padStart": _string_pad(True),
    "padEnd": _string_pad(False),
    "replace": _string_replace,
    "concat": lambda s, args, ev: s + "".join(to_str(a) for a in args),
    "at": _sequence_at,
    "toString": lambda s, args, ev: s,
}


def _number_to_fixed(x, args, ev):
    digits = _int_arg(args, 0, 0)
    if digits < 0 or digits > 100:
        raise JSRangeError("toFixed() digits argument must be between 0 and 100")
    if math.isnan(x) or math.isinf(x):
        return format_number(x)
    return f"{x:.{digits}f}"


def _number_to_string(x, args, ev):
    radix = _int_arg(args, 0, 10)
    if radix == 10 or not float(x).is_integer():
        return format_number(x)
    if radix < 2 or radix > 36:
        raise JSRangeError("toString() radix must be between 2 and 36")
    value = int(x)
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    n = abs(value)
    while True:
        n, r = divmod(n, radix)
        out = digits[r] + out
        if n == 0:
            break
    return "-" + out if value < 0 else out


NUMBER_METHODS: Dict[str, Callable] = {
    "toFixed": _number_to_fixed,
    "toString": _number_to_string,
}

OBJECT_METHODS: Dict[str, Callable] = {
    "hasOwnProperty": lambda obj, args, ev: to_str(_arg(args, 0)) in obj,
    "toString": lambda obj, args, ev: to_str(obj),
}


def method_table(receiver: Any) -> Dict[str, Callable]:
    if isinstance(receiver, list):
        return ARRAY_METHODS
    if isinstance(receiver, str):
        return STRING_METHODS
    if is_number(receiver):
        return NUMBER_METHODS
    if isinstance(receiver, dict):
        return OBJECT_METHODS
    return {}
