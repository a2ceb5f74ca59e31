"""Scope chain and variables-panel extraction."""

import pytest

from backend.stepjs.errors import JSReferenceError, JSTypeError
from backend.stepjs.scope import Scope, extract_variables
from backend.stepjs.values import FunctionRef, undefined


def test_declare_and_lookup():
    s = Scope()
    s.declare('a', 1)
    assert s.lookup('a') == 1
    with pytest.raises(JSReferenceError):
        s.lookup('b')


def test_const_cannot_be_assigned():
    s = Scope()
    s.declare('c', 1, const=True)
    with pytest.raises(JSTypeError):
        s.assign('c', 2)
    assert s.lookup('c') == 1


def test_child_scope_reads_and_writes_parent():
    root = Scope()
    root.declare('g', 1)
    child = Scope(parent=root)
    child.declare('local', 2)
    child.assign('g', 5)
    assert root.lookup('g') == 5
    assert not root.has('local')
    # undeclared names become globals
    child.assign('fresh', 3)
    assert root.vars['fresh'] == 3


def test_values_are_copied_on_write():
    s = Scope()
    arr = [1, 2]
    s.declare('a', arr)
    arr.append(3)
    assert s.lookup('a') == [1, 2]
    snap = s.snapshot()
    s.lookup('a').append(9)
    assert snap['a'] == [1, 2]


def test_extract_variables_sorts_and_hides_internal_names():
    rows = extract_variables({'b': 1, 'A': 2, 'a': 3, '__return__': 4}, {'b': 1})
    assert [r['name'] for r in rows] == ['A', 'a', 'b']
    assert [r['changed'] for r in rows] == [True, True, False]


def test_fresh_undefined_binding_is_not_changed():
    rows = extract_variables({'x': undefined}, {})
    assert rows == [{'name': 'x', 'value': 'undefined', 'type': 'undefined', 'changed': False}]


def test_display_types():
    rows = extract_variables({'a': [1], 'b': {'k': 1}, 'c': None, 'd': 'hi', 'e': True, 'f': FunctionRef('f')})
    types = {r['name']: (r['value'], r['type']) for r in rows}
    assert types == {
        'a': ('[1]', 'Array'),
        'b': ('{"k":1}', 'object'),
        'c': ('null', 'object'),
        'd': ('hi', 'string'),
        'e': ('true', 'boolean'),
        'f': ('ƒ()', 'function'),
    }


def test_nested_mutation_is_a_change():
    rows = extract_variables({'o': {'k': [1, 2]}}, {'o': {'k': [1]}})
    assert rows[0]['changed'] is True
