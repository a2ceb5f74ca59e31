"""Parser tests: expression precedence and statement classification."""

import pytest

from backend.stepjs.errors import JSSyntaxError
from backend.stepjs.lexer import tokenize
from backend.stepjs.parser import parse_expression_text, parse_statement


def _stmt(text):
    return parse_statement(tokenize(text)[:-1])


def test_multiplication_binds_tighter():
    assert parse_expression_text('1 + 2 * 3') == (
        'binary', '+', ('num', 1), ('binary', '*', ('num', 2), ('num', 3)),
    )


def test_exponent_is_right_associative():
    assert parse_expression_text('2 ** 3 ** 2') == (
        'binary', '**', ('num', 2), ('binary', '**', ('num', 3), ('num', 2)),
    )


def test_logical_operators():
    assert parse_expression_text('a ?? b || c') == (
        'logical', '??', ('name', 'a'), ('logical', '||', ('name', 'b'), ('name', 'c')),
    )


def test_template_parts():
    assert parse_expression_text('`a${b}c`') == ('tmpl', ['a', ('name', 'b'), 'c'])


def test_member_index_and_call_chain():
    assert parse_expression_text('a.b[0](1)') == (
        'call', ('index', ('member', ('name', 'a'), 'b'), ('num', 0)), [('num', 1)],
    )


def test_declaration_list():
    assert _stmt('let a = 1, b') == (
        'declare', 'let', [(('name', 'a'), ('num', 1)), (('name', 'b'), None)],
    )


def test_compound_and_update():
    assert _stmt('x += 2') == ('compound', '+', ('name', 'x'), ('num', 2))
    assert _stmt('x++') == ('update', '++', ('name', 'x'))
    assert _stmt('--x') == ('update', '--', ('name', 'x'))


def test_else_if_after_closing_brace():
    assert _stmt('} else if (x) {') == ('else', ('name', 'x'), True)
    assert _stmt('else {') == ('else', None, False)


def test_for_headers():
    assert _stmt('for (let i = 0; i < 3; i++) {') == (
        'for',
        ('declare', 'let', [(('name', 'i'), ('num', 0))]),
        ('binary', '<', ('name', 'i'), ('num', 3)),
        ('update', '++', ('name', 'i')),
    )
    assert _stmt('for (const v of xs) {') == ('for_of', 'const', 'v', 'of', ('name', 'xs'))
    assert _stmt('for (k in obj) {') == ('for_of', None, 'k', 'in', ('name', 'obj'))


def test_inline_if():
    assert _stmt('if (a) return 1') == ('if_inline', ('name', 'a'), ('return', ('num', 1)))
    assert _stmt('if (a) break') == ('if_inline', ('name', 'a'), ('break',))


def test_function_header():
    assert _stmt('function add(a, b) {') == ('function', 'add', ('a', 'b'))


@pytest.mark.parametrize(
    'text',
    [
        'let f = (x) => x',
        'const c',
        'throw x',
        'class A {',
        '1 = 2',
        'let = 3',
    ],
)
def test_rejected_statements(text):
    with pytest.raises(JSSyntaxError):
        _stmt(text)


def test_arrow_function_message():
    with pytest.raises(JSSyntaxError) as exc:
        _stmt('let f = x => x * 2')
    assert 'Arrow functions are not supported' in exc.value.message
