"""Unit tests validating stepping behaviour of the execution session."""

from backend.stepjs.session import ExecutionSession


def _vars(state):
    return {v['name']: v for v in state['variables']}


def test_let_and_console_log_three_steps():
    s = ExecutionSession('let x = 5;\nlet y = x + 3;\nconsole.log(y);')
    assert s.step() is True
    assert s.step() is True
    assert s.step() is False
    state = s.state
    variables = _vars(state)
    assert variables['x']['value'] == '5'
    assert variables['y']['value'] == '8'
    assert variables['y']['type'] == 'number'
    assert state['output'] == ['8']
    assert state['is_complete'] is True
    assert state['error'] is None
    assert state['current_line'] == 3


def test_single_line_for_loop():
    s = ExecutionSession('for (let i=0;i<3;i++){ console.log(i); }')
    state = s.run_to_end()
    assert state['output'] == ['0', '1', '2']
    assert _vars(state)['i']['value'] == '3'
    assert state['is_complete'] is True


def test_bubble_sort_runs_to_completion():
    code = (
        'let arr = [3, 1, 2];\n'
        'for (let i = 0; i < arr.length; i++) {\n'
        '  for (let j = 0; j < arr.length - i - 1; j++) {\n'
        '    if (arr[j] > arr[j + 1]) {\n'
        '      [arr[j], arr[j + 1]] = [arr[j + 1], arr[j]];\n'
        '    }\n'
        '  }\n'
        '}\n'
        'console.log(arr);\n'
    )
    s = ExecutionSession(code)
    state = s.run_to_end()
    assert state['error'] is None
    assert _vars(state)['arr']['value'] == '[1,2,3]'
    assert _vars(state)['arr']['type'] == 'Array'
    assert state['output'] == ['[1,2,3]']


def test_initial_state_is_cleared():
    s = ExecutionSession('let a = 1;\nlet b = 2;')
    state = s.state
    assert state['variables'] == []
    assert state['current_line'] == 0
    assert state['output'] == []
    assert state['is_complete'] is False
    assert state['call_stack'] == ['global']
    assert state['steps'] == 0


def test_changed_flags_follow_the_last_step():
    s = ExecutionSession('let x = 5;\nlet y = 1;\nx = 5;\ny = 2;')
    s.step()
    assert _vars(s.state)['x']['changed'] is True
    s.step()
    variables = _vars(s.state)
    assert variables['x']['changed'] is False
    assert variables['y']['changed'] is True
    s.step()
    # same value written again is not a change
    assert _vars(s.state)['x']['changed'] is False
    s.step()
    assert _vars(s.state)['y']['changed'] is True


def test_statement_only_touches_its_target():
    s = ExecutionSession('let a = 1;\nlet b = [1, 2];\nlet c = {k: 1};\nb[1] = 9;\nc.k = 4;\na += 2;')
    s.step()
    s.step()
    s.step()
    s.step()
    variables = _vars(s.state)
    assert variables['b']['value'] == '[1,9]'
    assert [v['name'] for v in s.state['variables'] if v['changed']] == ['b']
    s.step()
    assert [v['name'] for v in s.state['variables'] if v['changed']] == ['c']
    assert _vars(s.state)['c']['value'] == '{"k":4}'
    s.step()
    assert [v['name'] for v in s.state['variables'] if v['changed']] == ['a']
    assert _vars(s.state)['a']['value'] == '3'


def test_blank_and_comment_lines_are_steps():
    s = ExecutionSession('let a = 1;\n\n// comment\nlet b = 2;')
    s.step()
    assert s.state['current_line'] == 1
    s.step()
    s.step()
    assert s.state['current_line'] == 3
    s.step()
    assert s.state['is_complete'] is True


def test_untaken_branch_is_skipped_in_one_step():
    code = (
        'let a = 0;\n'
        'if (a > 1) {\n'
        '  a = 5;\n'
        '}\n'
        'a = 7;\n'
    )
    s = ExecutionSession(code)
    s.step()
    s.step()
    # the pointer lands after the block without showing the body
    assert s.state['current_line'] == 4
    s.step()
    assert _vars(s.state)['a']['value'] == '7'


def test_zero_iteration_for_lands_on_closing_brace():
    code = (
        'for (let i = 0; i < 0; i++) {\n'
        '  console.log(i);\n'
        '}\n'
        'console.log("done");\n'
    )
    s = ExecutionSession(code)
    s.step()
    assert s.state['current_line'] == 2
    s.step()
    assert s.state['current_line'] == 3
    s.step()
    assert s.state['output'] == ['done']


def test_for_loop_runs_body_n_times():
    code = (
        'let count = 0;\n'
        'for (let i = 0; i < 4; i++) {\n'
        '  count++;\n'
        '}\n'
    )
    state = ExecutionSession(code).run_to_end()
    variables = _vars(state)
    assert variables['count']['value'] == '4'
    assert variables['i']['value'] == '4'


def test_top_level_return_is_hidden():
    s = ExecutionSession('let a = 2;\nreturn a * 2;')
    state = s.run_to_end()
    assert [v['name'] for v in state['variables']] == ['a']
    assert s.global_act.scope.lookup('__return__') == 4


def test_template_literals_and_typeof():
    code = 'let n = 3;\nlet s = `n=${n + 1}`;\nlet t = typeof s;\nconsole.log(s, t);'
    state = ExecutionSession(code).run_to_end()
    assert state['output'] == ['n=4 string']


def test_console_log_formats_like_javascript():
    code = (
        'console.log(1, "a", true, null, undefined);\n'
        'console.log([1, "x"], {a: 1});\n'
        'console.log(10 / 4, 1 / 0, 0 / 0);\n'
    )
    state = ExecutionSession(code).run_to_end()
    assert state['output'] == [
        '1 a true null undefined',
        '[1,"x"] {"a":1}',
        '2.5 Infinity NaN',
    ]


def test_reset_restores_initial_state():
    s = ExecutionSession('let a = 1;\nconsole.log(a);')
    s.run_to_end()
    state = s.reset()
    assert state['variables'] == []
    assert state['output'] == []
    assert state['current_line'] == 0
    s.run_to_end()
    assert s.state['output'] == ['1']


def test_step_after_completion_is_noop():
    s = ExecutionSession('let a = 1;')
    assert s.step() is False
    before = s.state
    assert s.step() is False
    assert s.state == before
