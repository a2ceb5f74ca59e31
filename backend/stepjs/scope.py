"""Variable scopes and the change detector behind the variables panel."""

from typing import Any, Dict, List, Optional, Set

from .errors import JSReferenceError, JSTypeError
from .values import deep_copy, display_type, display_value, fingerprint, undefined

INTERNAL_PREFIX = "__"


class Scope:
    """A flat name -> value mapping with an optional parent.

    The program runs in a root scope; each user-function call gets a child
    whose lookups fall back to its parent. Values are deep-copied on write so
    later mutation of a source value never aliases a stored binding.
    """

    def __init__(self, parent: Optional["Scope"] = None):
        self.parent = parent
        self.vars: Dict[str, Any] = {}
        self.consts: Set[str] = set()

    def root(self) -> "Scope":
        scope = self
        while scope.parent is not None:
            scope = scope.parent
        return scope

    def find(self, name: str) -> Optional["Scope"]:
        scope = self
        while scope is not None:
            if name in scope.vars:
                return scope
            scope = scope.parent
        return None

    def has(self, name: str) -> bool:
        return self.find(name) is not None

    def lookup(self, name: str) -> Any:
        owner = self.find(name)
        if owner is None:
            raise JSReferenceError(f"{name} is not defined")
        return owner.vars[name]

    def declare(self, name: str, value: Any = undefined, const: bool = False) -> None:
        # re-declaration is tolerated so a re-entered loop body can re-run `let`
        self.vars[name] = deep_copy(value)
        if const:
            self.consts.add(name)
        else:
            self.consts.discard(name)

    def assign(self, name: str, value: Any) -> None:
        owner = self.find(name)
        if owner is None:
            # sloppy-mode implicit global
            owner = self.root()
        elif name in owner.consts:
            raise JSTypeError("Assignment to constant variable.")
        owner.vars[name] = deep_copy(value)

    def snapshot(self) -> Dict[str, Any]:
        return deep_copy(self.vars)


def extract_variables(current: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """Project a scope mapping into the variables panel rows.

    `changed` compares the JSON serialization of each value against
    `previous`; a key missing from `previous` counts as ``undefined``, so a
    fresh ``let x;`` is not flagged. Internal keys (``__return__`` ...) are
    hidden. Rows are sorted by name, case-insensitively.
    """
    previous = previous or {}
    rows = []
    for name, value in current.items():
        if name.startswith(INTERNAL_PREFIX):
            continue
        rows.append(
            {
                "name": name,
                "value": display_value(value),
                "type": display_type(value),
                "changed": fingerprint(value) != fingerprint(previous.get(name, undefined)),
            }
        )
    rows.sort(key=lambda row: (row["name"].lower(), row["name"]))
    return rows
