"""Runtime value model and JavaScript coercion rules.

Values are plain Python objects: ``None`` is ``null``, `undefined` is a
singleton, numbers are ``int``/``float`` (integral floats are normalized back
to ``int`` so they print like JS numbers), arrays are lists, objects are
dicts. User-defined functions appear as `FunctionRef` values.
"""

import copy
import json
import math
from typing import Any


class Undefined:
    __slots__ = ()

    def __repr__(self):
        return "undefined"

    def __bool__(self):
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


undefined = Undefined()


class FunctionRef:
    """A reference to a function from the program's function registry."""

    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name = name

    def __repr__(self):
        return f"FunctionRef({self.name!r})"

    def __eq__(self, other):
        return isinstance(other, FunctionRef) and other.name == self.name

    def __hash__(self):
        return hash(("fn", self.name))

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


MAX_SAFE_INTEGER = 2 ** 53


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_number(value):
    if isinstance(value, float):
        if value.is_integer() and abs(value) < MAX_SAFE_INTEGER:
            return int(value)
        return value
    if isinstance(value, int) and not isinstance(value, bool) and abs(value) >= MAX_SAFE_INTEGER:
        return float(value)
    return value


def type_of(value: Any) -> str:
    if value is undefined:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, FunctionRef):
        return "function"
    return "object"


def display_type(value: Any) -> str:
    """Type label shown in the variables panel (arrays are called out)."""
    if isinstance(value, list):
        return "Array"
    return type_of(value)


def truthy(value: Any) -> bool:
    if value is undefined or value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return not (value == 0 or math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


def _integral_digits(value: float) -> str:
    """Shortest round-trip digits of a large integral float, without an exponent."""
    text = repr(abs(value))
    if "e" in text:
        mantissa, exp = text.split("e")
        digits = mantissa.replace(".", "")
        digits += "0" * (int(exp) + 1 - len(digits))
    else:
        digits = text[:-2] if text.endswith(".0") else text
    return "-" + digits if value < 0 else digits


def format_number(value) -> str:
    if isinstance(value, int):
        if abs(value) < MAX_SAFE_INTEGER:
            return str(value)
        value = float(value) if abs(value) < 2 ** 1024 else math.copysign(math.inf, value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < MAX_SAFE_INTEGER:
        return str(int(value))
    if value.is_integer() and abs(value) < 1e21:
        return _integral_digits(value)
    text = repr(value)
    if "e" in text:
        mantissa, exp = text.split("e")
        sign = "-" if exp.startswith("-") else "+"
        text = f"{mantissa}e{sign}{exp.lstrip('+-').lstrip('0') or '0'}"
    return text


def to_str(value: Any) -> str:
    """JavaScript ``String(value)``."""
    if value is undefined:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ",".join("" if v is None or v is undefined else to_str(v) for v in value)
    if isinstance(value, FunctionRef):
        return f"function {value.name}() {{ [code] }}"
    return "[object Object]"


def to_number(value: Any):
    """JavaScript ``Number(value)``."""
    if isinstance(value, bool):
        return 1 if value else 0
    if is_number(value):
        return value
    if value is None:
        return 0
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0
        if text in ("Infinity", "+Infinity"):
            return math.inf
        if text == "-Infinity":
            return -math.inf
        lowered = text.lower()
        # float() accepts spellings JS rejects
        if "_" in text or lowered.lstrip("+-").startswith(("inf", "nan")):
            return math.nan
        try:
            if lowered.startswith("0x"):
                return int(text, 16)
            return normalize_number(float(text))
        except ValueError:
            return math.nan
    if isinstance(value, list):
        if not value:
            return 0
        if len(value) == 1:
            return to_number(to_str(value))
    return math.nan


def to_primitive(value: Any) -> Any:
    if isinstance(value, (list, dict, FunctionRef)):
        return to_str(value)
    return value


def stringify(value: Any, top: bool = True):
    """JavaScript ``JSON.stringify`` without indentation.

    Returns `undefined` for values JSON cannot represent at the top level.
    """
    if value is undefined or isinstance(value, FunctionRef):
        return undefined if top else None
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return "null"
        return format_number(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, list):
        items = []
        for item in value:
            text = stringify(item, top=False)
            items.append("null" if text is None else text)
        return "[" + ",".join(items) + "]"
    pairs = []
    for key, item in value.items():
        text = stringify(item, top=False)
        if text is None:
            continue
        pairs.append(json.dumps(str(key), ensure_ascii=False) + ":" + text)
    return "{" + ",".join(pairs) + "}"


def from_json(data: Any) -> Any:
    """Convert decoded JSON (``json.loads`` output) into runtime values."""
    if isinstance(data, list):
        return [from_json(v) for v in data]
    if isinstance(data, dict):
        return {str(k): from_json(v) for k, v in data.items()}
    if isinstance(data, float):
        return normalize_number(data)
    return data


def console_format(value: Any) -> str:
    """How ``console.log`` renders one argument."""
    if isinstance(value, (list, dict)):
        return stringify(value)
    return to_str(value)


def display_value(value: Any) -> str:
    """Value string shown in the variables panel."""
    if isinstance(value, (list, dict)):
        return stringify(value)
    if isinstance(value, FunctionRef):
        return "ƒ()"
    return to_str(value)


def fingerprint(value: Any):
    """Serialization used for change detection; `undefined` maps to None."""
    text = stringify(value)
    return None if text is undefined else text


def deep_copy(value: Any) -> Any:
    if isinstance(value, (list, dict)):
        return copy.deepcopy(value)
    return value


# --- operators ----------------------------------------------------------

def strict_equal(a: Any, b: Any) -> bool:
    if is_number(a) and is_number(b):
        return a == b
    if type_of(a) != type_of(b):
        return False
    if isinstance(a, (list, dict)):
        return a is b
    return a == b


def loose_equal(a: Any, b: Any) -> bool:
    if type_of(a) == type_of(b):
        return strict_equal(a, b)
    nullish = (None, undefined)
    if a in nullish or b in nullish:
        return (a in nullish) and (b in nullish)
    if isinstance(a, bool):
        return loose_equal(to_number(a), b)
    if isinstance(b, bool):
        return loose_equal(a, to_number(b))
    if is_number(a) and isinstance(b, str):
        return a == to_number(b)
    if isinstance(a, str) and is_number(b):
        return to_number(a) == b
    if isinstance(a, (list, dict)) and not isinstance(b, (list, dict)):
        return loose_equal(to_primitive(a), b)
    if isinstance(b, (list, dict)) and not isinstance(a, (list, dict)):
        return loose_equal(a, to_primitive(b))
    return False


def compare(op: str, a: Any, b: Any) -> bool:
    a, b = to_primitive(a), to_primitive(b)
    if not (isinstance(a, str) and isinstance(b, str)):
        a, b = to_number(a), to_number(b)
        if math.isnan(a) or math.isnan(b):
            return False
    if op == "<":
        return a < b
    if op == ">":
        return a > b
    if op == "<=":
        return a <= b
    return a >= b


def add(a: Any, b: Any):
    a, b = to_primitive(a), to_primitive(b)
    if isinstance(a, str) or isinstance(b, str):
        return to_str(a) + to_str(b)
    return normalize_number(to_number(a) + to_number(b))


def divide(a: Any, b: Any):
    a, b = to_number(a), to_number(b)
    if math.isnan(a) or math.isnan(b):
        return math.nan
    if b == 0:
        if a == 0:
            return math.nan
        negative = (a < 0) != (math.copysign(1.0, b) < 0)
        return -math.inf if negative else math.inf
    return normalize_number(a / b)


def remainder(a: Any, b: Any):
    a, b = to_number(a), to_number(b)
    if math.isnan(a) or math.isnan(b) or b == 0 or math.isinf(a):
        return math.nan
    if math.isinf(b):
        return a
    if isinstance(a, int) and isinstance(b, int):
        result = abs(a) % abs(b)
        return -result if a < 0 else result
    return normalize_number(math.fmod(a, b))


def power(a: Any, b: Any):
    a, b = float(to_number(a)), float(to_number(b))
    if math.isnan(a) or math.isnan(b) or (a < 0 and not math.isinf(b) and not b.is_integer()):
        return math.nan
    try:
        return normalize_number(a ** b)
    except OverflowError:
        return math.inf
    except ZeroDivisionError:
        return math.inf


def arithmetic(op: str, a: Any, b: Any):
    if op == "+":
        return add(a, b)
    if op == "/":
        return divide(a, b)
    if op == "%":
        return remainder(a, b)
    if op == "**":
        return power(a, b)
    x, y = to_number(a), to_number(b)
    if op == "-":
        return normalize_number(x - y)
    if op == "*":
        return normalize_number(x * y)
    raise ValueError(f"unknown operator {op}")
