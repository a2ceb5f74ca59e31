"""Tokenizer for the StepJS subset.

The lexer runs once over the whole source so block comments and template
literals may span lines. Each token records the 0-based line it starts on;
NEWLINE tokens are kept because the program builder segments statements per
line. Malformed input never raises here: unknown characters and unterminated
strings come out as ERROR tokens and the segment holding them is reported when
it is executed.
"""

import re
from typing import List, NamedTuple


class Token(NamedTuple):
    type: str
    value: str
    line: int
    col: int


# longer operators first
TOKEN_SPEC = [
    ("COMMENT", r"//[^\n]*|/\*[\s\S]*?\*/|/\*[\s\S]*"),
    ("NEWLINE", r"\n"),
    ("SKIP", r"[ \t\r\f\v]+"),
    ("NUMBER", r"(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?"),
    ("STRING", r'"(?:[^"\\\n]|\\.)*"|\'(?:[^\'\\\n]|\\.)*\''),
    ("TEMPLATE", r"`(?:[^`\\]|\\[\s\S])*`"),
    ("IDENT", r"[A-Za-z_$][A-Za-z0-9_$]*"),
    (
        "OP",
        r"\.\.\.|===|!==|\*\*=|\*\*|==|!=|<=|>=|&&|\|\||\?\?|\+\+|--|\+=|-=|\*=|/=|%=|=>|[+\-*/%<>=!?]",
    ),
    ("PUNC", r"[(){}\[\],;.:]"),
    ("ERROR", r"."),
]
TOKEN_RE = re.compile("|".join("(?P<%s>%s)" % pair for pair in TOKEN_SPEC))

KEYWORDS = frozenset(
    {
        "let", "const", "var", "function", "return", "if", "else", "for", "while",
        "break", "continue", "true", "false", "null", "undefined", "typeof", "of", "in",
    }
)


def tokenize(src: str) -> List[Token]:
    """Split `src` into tokens, dropping whitespace and comments.

    The returned list always ends with an EOF token.
    """
    out: List[Token] = []
    line = 0
    line_start = 0
    for m in TOKEN_RE.finditer(src):
        kind = m.lastgroup
        value = m.group()
        col = m.start() - line_start
        if kind == "NEWLINE":
            out.append(Token("NEWLINE", value, line, col))
        elif kind not in ("SKIP", "COMMENT"):
            out.append(Token(kind, value, line, col))
        breaks = value.count("\n")
        if breaks:
            line += breaks
            line_start = m.start() + value.rfind("\n") + 1
    out.append(Token("EOF", "", line, len(src) - line_start))
    return out


_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}


def unescape(body: str) -> str:
    """Decode JS string escapes in the text between the quotes."""
    if "\\" not in body:
        return body
    out = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 >= len(body):
            out.append(ch)
            i += 1
            continue
        nxt = body[i + 1]
        if nxt == "u" and re.match(r"[0-9a-fA-F]{4}", body[i + 2 : i + 6]):
            out.append(chr(int(body[i + 2 : i + 6], 16)))
            i += 6
            continue
        if nxt == "x" and re.match(r"[0-9a-fA-F]{2}", body[i + 2 : i + 4]):
            out.append(chr(int(body[i + 2 : i + 4], 16)))
            i += 4
            continue
        if nxt == "\n":
            # line continuation
            i += 2
            continue
        out.append(_ESCAPES.get(nxt, nxt))
        i += 2
    return "".join(out)
