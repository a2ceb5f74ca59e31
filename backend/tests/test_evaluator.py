"""Expression evaluation and JavaScript value semantics."""

import math

import pytest

from backend.stepjs.errors import JSReferenceError, JSTypeError
from backend.stepjs.evaluator import Evaluator, evaluate
from backend.stepjs.parser import parse_expression_text
from backend.stepjs.scope import Scope
from backend.stepjs.values import undefined


def _eval(expr, **names):
    scope = Scope()
    for name, value in names.items():
        scope.declare(name, value)
    return evaluate(expr, scope)


@pytest.mark.parametrize(
    'expr,expected',
    [
        ('1 + 2 * 3', 7),
        ('(1 + 2) * 3', 9),
        ('7 / 2', 3.5),
        ('6 / 2', 3),
        ('7 % -3', 1),
        ('-7 % 3', -1),
        ('2 ** 3 ** 2', 512),
        ("'5' + 1", '51'),
        ("'5' - 1", 4),
        ("'3' * '4'", 12),
        ('1 + true', 2),
        ('[1, 2] + 1', '1,21'),
        ('null + 1', 1),
        ('0.1 + 0.2', 0.30000000000000004),
    ],
)
def test_arithmetic(expr, expected):
    assert _eval(expr) == expected


def test_nan_and_infinity():
    assert math.isnan(_eval('0 / 0'))
    assert math.isnan(_eval('undefined + 1'))
    assert _eval('1 / 0') == math.inf
    assert _eval('-1 / 0') == -math.inf


@pytest.mark.parametrize(
    'expr,expected',
    [
        ('1 === 1', True),
        ("1 === '1'", False),
        ("1 == '1'", True),
        ('null == undefined', True),
        ('null === undefined', False),
        ('NaN === NaN', False),
        ("'b' > 'a'", True),
        ("'10' < '9'", True),
        ("'10' < 9", False),
        ('[] == false', True),
    ],
)
def test_comparisons(expr, expected):
    assert _eval(expr) is expected


def test_logical_operators_short_circuit():
    # the right side would raise if it were evaluated
    assert _eval('false && missing') is False
    assert _eval("'x' || missing") == 'x'
    assert _eval('0 ?? missing') == 0
    assert _eval('null ?? 5') == 5
    assert _eval("'' || 'fallback'") == 'fallback'
    assert _eval('1 > 0 ? "yes" : "no"') == 'yes'


def test_typeof():
    assert _eval('typeof 1') == 'number'
    assert _eval('typeof "s"') == 'string'
    assert _eval('typeof null') == 'object'
    assert _eval('typeof [1]') == 'object'
    assert _eval('typeof undeclared') == 'undefined'
    assert _eval('typeof Math.max') == 'function'


def test_spread_and_literals():
    assert _eval('[0, ...xs, 4]', xs=[1, 2, 3]) == [0, 1, 2, 3, 4]
    assert _eval('Math.max(...xs)', xs=[4, 9, 2]) == 9
    assert _eval('{a: 1, [k]: 2}', k='b') == {'a': 1, 'b': 2}
    assert _eval('[..."hi"]') == ['h', 'i']


def test_property_access():
    assert _eval('o.a.b', o={'a': {'b': 3}}) == 3
    assert _eval('arr[1]', arr=[5, 6]) == 6
    assert _eval('arr[9]', arr=[5, 6]) is undefined
    assert _eval('"abc".length') == 3
    assert _eval('"abc"[1]') == 'b'
    with pytest.raises(JSTypeError):
        _eval('o.a.b', o={})


def test_json_and_number_helpers():
    assert _eval('JSON.stringify({a: [1, "x", null, undefined]})') == '{"a":[1,"x",null,null]}'
    assert _eval('JSON.parse("[1, 2.5, {\\"k\\": true}]")') == [1, 2.5, {'k': True}]
    assert _eval('parseInt("42px")') == 42
    assert _eval('parseInt("ff", 16)') == 255
    assert math.isnan(_eval('parseInt("x")'))
    assert _eval('parseFloat("3.5e2abc")') == 350
    assert _eval('String(1e21)') == '1e+21'
    assert _eval('(3.14159).toFixed(2)') == '3.14'
    assert _eval('(255).toString(16)') == 'ff'
    assert _eval('Number.isInteger(5)') is True


def test_string_methods():
    assert _eval('"  hi ".trim()') == 'hi'
    assert _eval('"a,b,c".split(",")') == ['a', 'b', 'c']
    assert _eval('"abc".slice(-2)') == 'bc'
    assert _eval('"5".padStart(3, "0")') == '005'
    assert _eval('"abc".indexOf("c")') == 2
    assert _eval('"ab".repeat(3)') == 'ababab'


def test_array_methods():
    assert _eval('[1, 2, 3].slice(1)') == [2, 3]
    assert _eval('[3, 20, 100].sort()') == [100, 20, 3]
    assert _eval('[1, 2, 3].reverse().join("-")') == '3-2-1'
    assert _eval('[1, 2].concat([3], 4)') == [1, 2, 3, 4]
    assert _eval('[1, 2, 3].at(-1)') == 3
    assert _eval('[1, 2, 3].includes(2)') is True
    assert _eval('[NaN].includes(NaN)') is True
    assert _eval('[NaN].indexOf(NaN)') == -1


def test_unknown_names_and_methods():
    with pytest.raises(JSReferenceError):
        _eval('nope + 1')
    with pytest.raises(JSReferenceError):
        _eval('nope()')
    with pytest.raises(JSTypeError):
        _eval('[1].nope()')
    with pytest.raises(JSTypeError):
        _eval('Math.nope(1)')


def test_shadowed_namespace_is_a_plain_value():
    assert _eval('Math.max', Math={'max': 3}) == 3


def test_console_output_goes_to_emit():
    lines = []
    ev = Evaluator(emit=lines.append)
    ev.evaluate(parse_expression_text('console.log("a", 1, [2])'), Scope())
    assert lines == ['a 1 [2]']


@pytest.mark.parametrize(
    'expr,expected',
    [
        ('String(123456789012345680000 + 0)', '123456789012345680000'),
        ('String(2 ** 64)', '18446744073709552000'),
        ('String(-(2 ** 64))', '-18446744073709552000'),
        ('String(2 ** 53 + 2)', '9007199254740994'),
        ('String(12345678901234567890)', '12345678901234567000'),
        ('String(2 ** 70)', '1.1805916207174113e+21'),
    ],
)
def test_large_integers_print_shortest_digits(expr, expected):
    assert _eval(expr) == expected
