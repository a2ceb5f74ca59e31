"""Turn source text into a list of executable instructions.

A program is loaded once per `initialize_code`:

1. the whole source is tokenized (see `lexer.tokenize`);
2. the token stream is cut into statement segments at newlines, ``;`` and
   block braces, so ``for (...) { console.log(i); }`` on one line yields
   three instructions;
3. each segment is classified by the parser into a statement tuple;
4. a block index pairs every opening instruction with its closing ``}`` and
   links ``if``/``else`` chains;
5. top-level ``function`` declarations are recorded in the function
   registry.

Every physical line owns at least one instruction; lines with nothing to run
(blank lines, comments) become ``("noop",)`` so single stepping walks the
source line by line.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from .errors import JSSyntaxError
from .lexer import Token, tokenize
from .parser import parse_statement

HEADER_KEYWORDS = ("if", "for", "while", "else", "function")
_OPENING = ("(", "[")
_CLOSING = (")", "]")


@dataclass(frozen=True)
class Instruction:
    line: int
    stmt: Tuple[Any, ...]
    text: str = ""
    opens: bool = False
    closes: bool = False

    @property
    def kind(self) -> str:
        return self.stmt[0]


@dataclass(frozen=True)
class FunctionDef:
    name: str
    params: Tuple[str, ...]
    start: int
    end: int
    start_line: int
    end_line: int
    source: str


@dataclass
class Program:
    lines: List[str]
    instructions: List[Instruction]
    match: Dict[int, int] = field(default_factory=dict)
    opener_of: Dict[int, int] = field(default_factory=dict)
    chain_next: Dict[int, int] = field(default_factory=dict)
    chain_prev: Dict[int, int] = field(default_factory=dict)
    functions: Dict[str, FunctionDef] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.instructions)

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def line_of(self, index: int) -> int:
        """0-based source line of instruction `index` (``line_count`` past the end)."""
        if index >= len(self.instructions):
            return self.line_count
        return self.instructions[index].line

    def block_end(self, index: int) -> int:
        """Index of the ``}`` closing the block opened at `index`."""
        end = self.match.get(index)
        if end is None:
            line = self.instructions[index].line + 1
            raise JSSyntaxError(
                "Missing closing '}'",
                hint=f"the block opened on line {line} is never closed",
                line=line,
            )
        return end

    def chain_end(self, index: int) -> int:
        """Closing ``}`` of the last clause in the if/else chain containing `index`."""
        while index in self.chain_next:
            index = self.chain_next[index]
        return self.block_end(index)


def _is_header(current: List[Token]) -> bool:
    if not current:
        # lone `{`
        return True
    first, last = current[0], current[-1]
    return first.value in HEADER_KEYWORDS + ("}",) and last.value in (")", "else")


def _next_is_brace(tokens: List[Token], k: int) -> bool:
    for tok in tokens[k + 1:]:
        if tok.type != "NEWLINE":
            return tok.type == "PUNC" and tok.value == "{"
    return False

def segment_tokens(tokens: List[Token]) -> List[Tuple[List[Token], bool]]:
    """Cut a token stream into statement segments.

    Returns ``(tokens, opens_block)`` pairs. Newlines only end a segment
    outside brackets, so multi-line array and object literals stay whole.
    A ``{`` ends the segment when it opens a block (after a control-flow
    header or standing alone); any other ``{`` starts an object literal.
    """
    segments: List[Tuple[List[Token], bool]] = []
    current: List[Token] = []
    nesting: List[str] = []

    def flush(opens: bool = False) -> None:
        nonlocal current
        if current:
            segments.append((current, opens))
        current = []

    for k, tok in enumerate(tokens):
        if tok.type == "EOF":
            break
        if tok.type == "NEWLINE":
            # a header whose `{` sits on a following line waits for it
            if not nesting and not (current and _is_header(current) and _next_is_brace(tokens, k)):
                flush()
            continue
        if tok.type != "PUNC":
            current.append(tok)
            continue
        value = tok.value
        if value == ";" and not nesting:
            flush()
        elif value in _OPENING:
            nesting.append(value)
            current.append(tok)
        elif value in _CLOSING:
            if nesting:
                nesting.pop()
            current.append(tok)
        elif value == "{":
            if not nesting and _is_header(current):
                current.append(tok)
                flush(opens=True)
            else:
                nesting.append(value)
                current.append(tok)
        elif value == "}":
            if nesting:
                nesting.pop()
                current.append(tok)
                continue
            flush()
            current.append(tok)
            nxt = tokens[k + 1] if k + 1 < len(tokens) else None
            if nxt is None or nxt.type != "IDENT" or nxt.value != "else":
                flush()
        else:
            current.append(tok)
    flush()
    return segments


def _segment_text(lines: List[str], seg: List[Token]) -> str:
    first, last = seg[0], seg[-1]
    if first.line == last.line and "\n" not in last.value:
        return lines[first.line][first.col : last.col + len(last.value)]
    return " ".join(tok.value for tok in seg)


def _classify(seg: List[Token]) -> Tuple[Any, ...]:
    if any(tok.type == "ERROR" for tok in seg):
        return ("invalid", "Invalid or unexpected token")
    try:
        return parse_statement(seg)
    except JSSyntaxError as e:
        if seg[0].type == "PUNC" and seg[0].value == "}":
            return ("invalid", e.message)
        return ("unsupported", e.message)


def _last_line(seg: List[Token]) -> int:
    last = seg[-1]
    return last.line + last.value.count("\n")


def build_instructions(lines: List[str], tokens: List[Token]) -> List[Instruction]:
    starts: Dict[int, List[Instruction]] = {}
    covered = set()
    for seg, opens in segment_tokens(tokens):
        first = seg[0]
        closes = first.type == "PUNC" and first.value == "}"
        instr = Instruction(first.line, _classify(seg), _segment_text(lines, seg), opens, closes)
        starts.setdefault(first.line, []).append(instr)
        covered.update(range(first.line, _last_line(seg) + 1))
    instructions: List[Instruction] = []
    for line_no in range(len(lines)):
        if line_no in starts:
            instructions.extend(starts[line_no])
        elif line_no not in covered:
            instructions.append(Instruction(line_no, ("noop",)))
    return instructions


def _index_blocks(program: Program) -> Dict[str, int]:
    """Fill the block index; return the header index of each top-level function."""
    instrs = program.instructions
    stack: List[int] = []
    function_starts: Dict[str, int] = {}
    enclosing_functions = 0
    for i, ins in enumerate(instrs):
        if ins.closes:
            if stack:
                opener = stack.pop()
                program.match[opener] = i
                program.opener_of[i] = opener
                if instrs[opener].kind == "function":
                    enclosing_functions -= 1
            else:
                instrs[i] = Instruction(ins.line, ("invalid", "Unexpected token '}'"), ins.text, False, True)
                continue
        if ins.opens:
            stack.append(i)
            if ins.kind == "function":
                if enclosing_functions == 0:
                    function_starts.setdefault(ins.stmt[1], i)
                enclosing_functions += 1

    for closer, opener in program.opener_of.items():
        if instrs[opener].kind not in ("if", "else"):
            continue
        ins = instrs[closer]
        if ins.kind == "else":
            program.chain_next[opener] = closer
            continue
        j = closer + 1
        while j < len(instrs) and instrs[j].kind == "noop":
            j += 1
        if j < len(instrs) and instrs[j].kind == "else" and not instrs[j].stmt[2]:
            program.chain_next[opener] = j
    program.chain_prev = {v: k for k, v in program.chain_next.items()}
    return function_starts


def _register_functions(program: Program, function_starts: Dict[str, int]) -> None:
    for name, start in function_starts.items():
        end = program.match.get(start)
        if end is None:
            continue
        header = program.instructions[start]
        end_line = program.instructions[end].line
        program.functions[name] = FunctionDef(
            name=name,
            params=header.stmt[2],
            start=start,
            end=end,
            start_line=header.line,
            end_line=end_line,
            source="\n".join(program.lines[header.line : end_line + 1]),
        )


def load_program(code: str) -> Program:
    lines = code.split("\n")
    program = Program(lines=lines, instructions=build_instructions(lines, tokenize(code)))
    _register_functions(program, _index_blocks(program))
    return program
