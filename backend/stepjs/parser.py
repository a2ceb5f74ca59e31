"""Expression parser and statement classifier for StepJS.

Expressions are parsed with precedence climbing into small tagged tuples, the
same shape the evaluator dispatches on::

    ("num", 3)  ("str", "a")  ("tmpl", [parts])  ("bool", True)  ("null",)
    ("undef",)  ("name", "x")  ("array", [items])  ("object", [entries])
    ("spread", expr)  ("member", obj, "prop")  ("index", obj, key)
    ("call", callee, [args])  ("unary", op, expr)  ("binary", op, l, r)
    ("logical", op, l, r)  ("cond", test, then, otherwise)

A statement is one segment of a source line (see `program.py`). The
classifier turns it into a tagged tuple whose first element names the
statement kind; the executor dispatches on that tag.
"""

import re
from typing import Any, List, Optional, Sequence, Tuple

from .errors import JSSyntaxError
from .lexer import Token, tokenize, unescape

Node = Tuple[Any, ...]

BINARY_PRECEDENCE = {
    "??": 1,
    "||": 2,
    "&&": 3,
    "==": 4,
    "!=": 4,
    "===": 4,
    "!==": 4,
    "<": 5,
    ">": 5,
    "<=": 5,
    ">=": 5,
    "+": 6,
    "-": 6,
    "*": 7,
    "/": 7,
    "%": 7,
    "**": 8,
}
LOGICAL_OPS = ("&&", "||", "??")
COMPOUND_OPS = ("+=", "-=", "*=", "/=", "%=", "**=")
UNARY_OPS = ("!", "-", "+")
DECLARATION_KINDS = ("let", "const", "var")
# words that can never be used as a binding name or start an expression
RESERVED = frozenset(
    {
        "let", "const", "var", "function", "return", "if", "else", "for", "while",
        "break", "continue", "true", "false", "null", "undefined", "typeof", "new",
        "class", "switch", "case", "default", "do", "try", "catch", "finally",
        "throw", "delete", "void", "this", "await", "async", "yield", "import", "export",
    }
)
TARGET_KINDS = ("name", "index", "member")


class Parser:
    """Recursive-descent parser over one statement's tokens."""

    def __init__(self, tokens: Sequence[Token]):
        self.tokens = [t for t in tokens if t.type != "NEWLINE"]
        if not self.tokens or self.tokens[-1].type != "EOF":
            last = self.tokens[-1] if self.tokens else Token("EOF", "", 0, 0)
            self.tokens.append(Token("EOF", "", last.line, last.col + len(last.value)))
        self.i = 0

    # --- token helpers -------------------------------------------------
    def peek(self, offset: int = 0) -> Token:
        return self.tokens[min(self.i + offset, len(self.tokens) - 1)]

    def advance(self) -> Token:
        tok = self.peek()
        if tok.type != "EOF":
            self.i += 1
        return tok

    def check(self, value: str, offset: int = 0) -> bool:
        tok = self.peek(offset)
        return tok.type in ("PUNC", "OP", "IDENT") and tok.value == value

    def expect(self, value: str) -> Token:
        if not self.check(value):
            raise self._error(f"Expected '{value}'")
        return self.advance()

    def at_end(self) -> bool:
        return self.peek().type == "EOF"

    def expect_end(self) -> None:
        if not self.at_end():
            raise self._error("Unexpected token")

    def _error(self, message: str) -> JSSyntaxError:
        tok = self.peek()
        shown = tok.value if tok.type != "EOF" else "end of line"
        return JSSyntaxError(f"{message} near '{shown}'")

    def _ident(self) -> str:
        tok = self.peek()
        if tok.type != "IDENT" or tok.value in RESERVED:
            raise self._error("Expected identifier")
        self.advance()
        return tok.value

    # --- expressions ---------------------------------------------------
    def parse_expression(self) -> Node:
        test = self.parse_binary(1)
        if self.check("?"):
            self.advance()
            then = self.parse_expression()
            self.expect(":")
            otherwise = self.parse_expression()
            return ("cond", test, then, otherwise)
        return test

    def parse_binary(self, min_prec: int) -> Node:
        left = self.parse_unary()
        while True:
            tok = self.peek()
            prec = BINARY_PRECEDENCE.get(tok.value) if tok.type == "OP" else None
            if prec is None or prec < min_prec:
                return left
            self.advance()
            # exponentiation is right-associative
            right = self.parse_binary(prec if tok.value == "**" else prec + 1)
            kind = "logical" if tok.value in LOGICAL_OPS else "binary"
            left = (kind, tok.value, left, right)

    def parse_unary(self) -> Node:
        tok = self.peek()
        if tok.type == "OP" and tok.value in UNARY_OPS:
            self.advance()
            return ("unary", tok.value, self.parse_unary())
        if tok.type == "IDENT" and tok.value == "typeof":
            self.advance()
            return ("unary", "typeof", self.parse_unary())
        return self.parse_postfix()

    def parse_postfix(self) -> Node:
        node = self.parse_primary()
        while True:
            if self.check("."):
                self.advance()
                tok = self.advance()
                if tok.type != "IDENT":
                    raise self._error("Expected property name")
                node = ("member", node, tok.value)
            elif self.check("["):
                self.advance()
                key = self.parse_expression()
                self.expect("]")
                node = ("index", node, key)
            elif self.check("("):
                self.advance()
                node = ("call", node, self._parse_items(")"))
            else:
                return node

    def _parse_items(self, closer: str) -> List[Node]:
        """Parse comma-separated expressions (with spread) up to `closer`."""
        items: List[Node] = []
        while not self.check(closer):
            if self.check("..."):
                self.advance()
                items.append(("spread", self.parse_expression()))
            else:
                items.append(self.parse_expression())
            if not self.check(closer):
                self.expect(",")
        self.advance()
        return items

    def parse_primary(self) -> Node:
        tok = self.peek()
        if tok.type == "NUMBER":
            self.advance()
            return ("num", parse_number_literal(tok.value))
        if tok.type == "STRING":
            self.advance()
            return ("str", unescape(tok.value[1:-1]))
        if tok.type == "TEMPLATE":
            self.advance()
            return ("tmpl", parse_template(tok.value[1:-1]))
        if tok.type == "IDENT":
            literal = _LITERALS.get(tok.value)
            if literal is not None:
                self.advance()
                return literal
            if tok.value in RESERVED:
                raise self._error("Unsupported expression")
            self.advance()
            if self.check("=>"):
                raise self._error("Arrow functions are not supported")
            return ("name", tok.value)
        if self.check("("):
            self.advance()
            node = self.parse_expression()
            self.expect(")")
            if self.check("=>"):
                raise self._error("Arrow functions are not supported")
            return node
        if self.check("["):
            self.advance()
            return ("array", self._parse_items("]"))
        if self.check("{"):
            self.advance()
            return self._parse_object()
        if tok.type == "ERROR":
            raise JSSyntaxError("Invalid or unexpected token")
        raise self._error("Unexpected token")

    def _parse_object(self) -> Node:
        entries: List[Tuple[str, Optional[Any], Node]] = []
        while not self.check("}"):
            if self.check("..."):
                self.advance()
                entries.append(("spread", None, self.parse_expression()))
            else:
                tok = self.advance()
                if tok.type == "IDENT":
                    key: Any = tok.value
                elif tok.type == "STRING":
                    key = unescape(tok.value[1:-1])
                elif tok.type == "NUMBER":
                    key = tok.value
                elif tok.type == "PUNC" and tok.value == "[":
                    key = self.parse_expression()
                    self.expect("]")
                    self.expect(":")
                    entries.append(("computed", key, self.parse_expression()))
                    if not self.check("}"):
                        self.expect(",")
                    continue
                else:
                    raise self._error("Invalid object key")
                if self.check(":"):
                    self.advance()
                    entries.append(("prop", key, self.parse_expression()))
                elif tok.type == "IDENT" and tok.value not in RESERVED:
                    entries.append(("prop", key, ("name", key)))
                else:
                    raise self._error("Expected ':'")
            if not self.check("}"):
                self.expect(",")
        self.advance()
        return ("object", entries)

    # --- statements ----------------------------------------------------
    def parse_statement(self) -> Node:
        """Classify the whole token sequence as one statement."""
        if self.at_end():
            return ("noop",)
        if self.check("}"):
            self.advance()
            if self.at_end():
                return ("close",)
            if self.check("else"):
                stmt = self._parse_else(closes=True)
                self.expect_end()
                return stmt
            raise self._error("Unexpected token after '}'")
        tok = self.peek()
        dispatch_map = {
            "else": lambda: self._parse_else(closes=False),
            "function": self._parse_function,
            "return": self._parse_return,
            "let": self._parse_declaration,
            "const": self._parse_declaration,
            "var": self._parse_declaration,
            "for": self._parse_for,
            "while": self._parse_while,
            "if": self._parse_if,
            "break": self._parse_jump,
            "continue": self._parse_jump,
        }
        handler = dispatch_map.get(tok.value) if tok.type == "IDENT" else None
        if handler is None and tok.type == "IDENT" and tok.value in _UNSUPPORTED_STATEMENTS:
            raise JSSyntaxError(f"Unsupported statement '{tok.value}'")
        if handler is not None:
            stmt = handler()
        elif self.check("{"):
            self.advance()
            stmt = ("block",)
        else:
            stmt = self._parse_simple()
        self.expect_end()
        return stmt

    def _parse_else(self, closes: bool) -> Node:
        self.expect("else")
        cond = None
        if self.check("if"):
            self.advance()
            self.expect("(")
            cond = self.parse_expression()
            self.expect(")")
        self.expect("{")
        return ("else", cond, closes)

    def _parse_function(self) -> Node:
        self.expect("function")
        name = self._ident()
        self.expect("(")
        params: List[str] = []
        while not self.check(")"):
            params.append(self._ident())
            if not self.check(")"):
                self.expect(",")
        self.advance()
        self.expect("{")
        return ("function", name, tuple(params))

    def _parse_return(self) -> Node:
        self.expect("return")
        if self.at_end():
            return ("return", None)
        return ("return", self.parse_expression())

    def _parse_jump(self) -> Node:
        return (self.advance().value,)

    def _parse_declaration(self) -> Node:
        kind = self.advance().value
        decls: List[Tuple[Node, Optional[Node]]] = []
        while True:
            if self.check("["):
                target: Node = ("pattern", self._parse_pattern())
            else:
                target = ("name", self._ident())
            init = None
            if self.check("="):
                self.advance()
                init = self.parse_expression()
            elif kind == "const" or target[0] == "pattern":
                raise self._error("Missing initializer in declaration")
            decls.append((target, init))
            if not self.check(","):
                break
            self.advance()
        return ("declare", kind, decls)

    def _parse_pattern(self) -> List[Optional[str]]:
        self.expect("[")
        names: List[Optional[str]] = []
        while not self.check("]"):
            if self.check(","):
                self.advance()
                names.append(None)
                continue
            names.append(self._ident())
            if not self.check("]"):
                self.expect(",")
        self.advance()
        return names

    def _parse_for(self) -> Node:
        self.expect("for")
        self.expect("(")
        # for (const x of xs) / for (k in obj)
        offset = 1 if self.peek().value in DECLARATION_KINDS else 0
        if self.peek(offset).type == "IDENT" and self.peek(offset + 1).value in ("of", "in"):
            decl_kind = self.advance().value if offset else None
            name = self._ident()
            mode = self.advance().value
            iterable = self.parse_expression()
            self.expect(")")
            self.expect("{")
            return ("for_of", decl_kind, name, mode, iterable)
        init = None
        if not self.check(";"):
            init = self._parse_declaration() if self.peek().value in DECLARATION_KINDS else self._parse_simple()
        self.expect(";")
        cond = None if self.check(";") else self.parse_expression()
        self.expect(";")
        update = None if self.check(")") else self._parse_simple()
        self.expect(")")
        self.expect("{")
        return ("for", init, cond, update)

    def _parse_while(self) -> Node:
        self.expect("while")
        self.expect("(")
        cond = self.parse_expression()
        self.expect(")")
        self.expect("{")
        return ("while", cond)

    def _parse_if(self) -> Node:
        self.expect("if")
        self.expect("(")
        cond = self.parse_expression()
        self.expect(")")
        if self.check("{"):
            self.advance()
            return ("if", cond)
        # braceless body on the same line
        tok = self.peek()
        if tok.value == "return":
            body = self._parse_return()
        elif tok.value in ("break", "continue"):
            body = self._parse_jump()
        else:
            body = self._parse_simple()
        return ("if_inline", cond, body)

    def _parse_simple(self) -> Node:
        """Assignment, update, compound assignment, call or bare expression."""
        if self.check("++") or self.check("--"):
            op = self.advance().value
            return ("update", op, self._check_target(self.parse_postfix()))
        expr = self.parse_expression()
        tok = self.peek()
        if self.check("="):
            self.advance()
            value = self.parse_expression()
            if expr[0] == "array":
                return ("destructure", [self._check_target(e) for e in expr[1]], value)
            return ("assign", self._check_target(expr), value)
        if tok.type == "OP" and tok.value in COMPOUND_OPS:
            self.advance()
            return ("compound", tok.value[:-1], self._check_target(expr), self.parse_expression())
        if self.check("++") or self.check("--"):
            return ("update", self.advance().value, self._check_target(expr))
        if expr[0] == "call":
            return ("call", expr)
        return ("expr", expr)

    def _check_target(self, node: Node) -> Node:
        if node[0] not in TARGET_KINDS:
            raise JSSyntaxError("Invalid left-hand side in assignment")
        return node


_LITERALS = {
    "true": ("bool", True),
    "false": ("bool", False),
    "null": ("null",),
    "undefined": ("undef",),
}

_UNSUPPORTED_STATEMENTS = RESERVED - set(_LITERALS) - {"typeof"}

_INT_RE = re.compile(r"\d+$")


def parse_number_literal(text: str):
    if _INT_RE.match(text):
        return int(text)
    value = float(text)
    if value.is_integer() and abs(value) < 2 ** 53:
        return int(value)
    return value


def parse_template(body: str) -> List[Any]:
    """Split a template literal body into text parts and expression nodes."""
    parts: List[Any] = []
    text: List[str] = []
    i = 0
    while i < len(body):
        if body[i] == "\\" and i + 1 < len(body):
            text.append(body[i : i + 2])
            i += 2
            continue
        if body.startswith("${", i):
            depth = 1
            j = i + 2
            while j < len(body) and depth:
                if body[j] == "{":
                    depth += 1
                elif body[j] == "}":
                    depth -= 1
                j += 1
            if depth:
                raise JSSyntaxError("Unterminated template expression")
            if text:
                parts.append(unescape("".join(text)))
                text = []
            parts.append(parse_expression_text(body[i + 2 : j - 1]))
            i = j
            continue
        text.append(body[i])
        i += 1
    if text:
        parts.append(unescape("".join(text)))
    return parts


def parse_expression_text(text: str) -> Node:
    """Parse a standalone expression string."""
    parser = Parser(tokenize(text))
    if parser.at_end():
        raise JSSyntaxError("Empty expression")
    node = parser.parse_expression()
    parser.expect_end()
    return node


def parse_statement(tokens: Sequence[Token]) -> Node:
    return Parser(tokens).parse_statement()
