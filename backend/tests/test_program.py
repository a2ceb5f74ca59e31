"""Program loading: segmentation, block index and function registry."""

from backend.stepjs.program import load_program


def _kinds(program):
    return [ins.kind for ins in program.instructions]


def test_if_else_block_index():
    program = load_program('let a = 1;\nif (a) {\n  a = 2;\n} else {\n  a = 3;\n}')
    assert _kinds(program) == ['declare', 'if', 'assign', 'else', 'assign', 'close']
    assert program.match == {1: 3, 3: 5}
    assert program.opener_of == {3: 1, 5: 3}
    assert program.chain_next == {1: 3}
    assert program.chain_prev == {3: 1}
    assert program.chain_end(1) == 5


def test_standalone_else_joins_chain():
    program = load_program('if (a) {\n}\n\nelse {\n}')
    assert _kinds(program) == ['if', 'close', 'noop', 'else', 'close']
    assert program.chain_next == {0: 3}


def test_one_line_loop_is_three_instructions():
    program = load_program('for (let i=0;i<3;i++){ console.log(i); }')
    assert _kinds(program) == ['for', 'call', 'close']
    assert [ins.line for ins in program.instructions] == [0, 0, 0]
    assert program.match == {0: 2}


def test_function_registry_skips_nested_functions():
    program = load_program(
        'function outer(a, b) {\n'
        '  function inner() {\n'
        '  }\n'
        '  return a;\n'
        '}\n'
        'outer(1, 2);'
    )
    assert list(program.functions) == ['outer']
    fn = program.functions['outer']
    assert fn.params == ('a', 'b')
    assert (fn.start, fn.end) == (0, 4)
    assert (fn.start_line, fn.end_line) == (0, 4)
    assert fn.source.startswith('function outer(a, b) {')


def test_blank_and_comment_lines_become_noops():
    program = load_program('// hi\n\n/* a\n b */\nlet a = 1;')
    assert _kinds(program) == ['noop', 'noop', 'noop', 'noop', 'declare']
    assert program.line_count == 5


def test_multiline_literal_is_one_instruction():
    program = load_program('let o = {\n  a: 1,\n  b: 2\n};\nlet z = 0;')
    assert _kinds(program) == ['declare', 'declare']
    assert [ins.line for ins in program.instructions] == [0, 4]


def test_unmatched_closing_brace_is_invalid():
    program = load_program('let a = 1;\n}')
    assert program.instructions[1].kind == 'invalid'
    assert program.instructions[1].stmt[1] == "Unexpected token '}'"


def test_line_of_past_the_end():
    program = load_program('let a = 1;\nlet b = 2;')
    assert program.line_of(0) == 0
    assert program.line_of(len(program)) == 2


def test_unsupported_statement_keeps_text():
    program = load_program('do {\n} while (x);')
    first = program.instructions[0]
    assert first.kind == 'unsupported'
    assert first.text


def test_brace_on_next_line_joins_header():
    program = load_program('let a = 0;\nif (a > 1)\n{\n  a = 9;\n}')
    assert _kinds(program) == ['declare', 'if', 'assign', 'close']
    assert [ins.line for ins in program.instructions] == [0, 1, 3, 4]
    assert program.match == {1: 3}


def test_braceless_header_is_not_held():
    program = load_program('if (a > 1)\n  a = 9;\nlet b = {\n  k: 1\n};')
    assert _kinds(program)[-1] == 'declare'
    assert program.match == {}
