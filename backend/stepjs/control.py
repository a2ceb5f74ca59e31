"""Control-flow state: loop and branch frames, and call activations."""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from .program import FunctionDef
from .scope import Scope
from .values import undefined


@dataclass
class LoopFrame:
    """An active loop.

    `opener` is the index of the loop header; the loop re-enters at
    ``opener + 1`` without re-running the header. ``for``-of/in loops keep the
    materialized `items` and the current `position`.
    """

    opener: int
    kind: str
    cond: Any = None
    update: Any = None
    items: Optional[List[Any]] = None
    position: int = 0
    target: Optional[str] = None
    decl: Optional[str] = None


@dataclass
class BranchFrame:
    """An if/else chain being executed; `taken` once one clause has run."""

    opener: int
    taken: bool = False


Frame = Union[LoopFrame, BranchFrame]


@dataclass
class Activation:
    label: str
    scope: Scope
    ip: int = 0
    skip_target: Optional[int] = None
    frames: List[Frame] = field(default_factory=list)
    function: Optional[FunctionDef] = None
    returned: bool = False
    return_value: Any = undefined

    def skip_to(self, target: int) -> None:
        self.skip_target = target

    def next_index(self) -> int:
        """Where execution continues once a pending skip is applied."""
        if self.skip_target is not None and self.ip < self.skip_target:
            return self.skip_target
        return self.ip

    def resolve_skip(self) -> None:
        self.ip = self.next_index()
        self.skip_target = None

    def innermost_loop(self) -> Optional[LoopFrame]:
        for frame in reversed(self.frames):
            if isinstance(frame, LoopFrame):
                return frame
        return None

    def top_frame(self) -> Optional[Frame]:
        return self.frames[-1] if self.frames else None
