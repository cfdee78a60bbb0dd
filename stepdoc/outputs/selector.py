"""
Selector resolution for step outputs.

Selectors address a single value inside an invocation result:
- ``$``                   the whole result
- ``$.Field``             a mapping field
- ``$.List[0].Field``     a list element, then a field
- ``$['Odd Key']``        a quoted mapping field

Only deterministic single-value extraction is supported; there are no
wildcards, slices or filters.
"""

import re
from dataclasses import dataclass
from typing import Any, List, Tuple, Union

from ..exceptions import InvalidSelectorError, SelectorNotFoundError


Segment = Union[str, int]

_FIELD = re.compile(r'\.([A-Za-z0-9_\-]+)')
_INDEX = re.compile(r'\[(\d+)\]')
_QUOTED = re.compile(r"\[(['\"])(.*?)\1\]")


@dataclass(frozen=True)
class Selector:
    """A compiled selector: the source text plus its parsed path segments."""
    text: str
    segments: Tuple[Segment, ...]

    def evaluate(self, data: Any) -> Any:
        """
        Apply the selector to an invocation result.

        Args:
            data: Nested mapping/list structure

        Returns:
            The single addressed value

        Raises:
            SelectorNotFoundError: If any segment does not match
        """
        current = data
        walked = "$"
        for segment in self.segments:
            if isinstance(segment, int):
                if not isinstance(current, list):
                    raise SelectorNotFoundError(self.text, f"'{walked}' is not a list")
                if segment >= len(current):
                    raise SelectorNotFoundError(self.text, f"index {segment} out of range at '{walked}'")
                current = current[segment]
                walked += f"[{segment}]"
            else:
                if not isinstance(current, dict):
                    raise SelectorNotFoundError(self.text, f"'{walked}' is not an object")
                if segment not in current:
                    raise SelectorNotFoundError(self.text, f"missing key '{segment}' at '{walked}'")
                current = current[segment]
                walked += f".{segment}"
        return current

    def __str__(self) -> str:
        return self.text


def compile_selector(text: str) -> Selector:
    """
    Parse selector text.

    Args:
        text: Selector such as ``$.Payload.items[0]``

    Returns:
        Compiled Selector

    Raises:
        InvalidSelectorError: If the text is not a supported selector
    """
    if not isinstance(text, str):
        raise InvalidSelectorError(repr(text), "selector must be a string")
    if not text.startswith('$'):
        raise InvalidSelectorError(text, "selector must start with '$'")

    segments: List[Segment] = []
    pos = 1
    while pos < len(text):
        for pattern in (_FIELD, _INDEX, _QUOTED):
            match = pattern.match(text, pos)
            if match:
                break
        else:
            raise InvalidSelectorError(text, f"unexpected character {text[pos]!r} at position {pos}")

        if pattern is _INDEX:
            segments.append(int(match.group(1)))
        elif pattern is _QUOTED:
            segments.append(match.group(2))
        else:
            segments.append(match.group(1))
        pos = match.end()

    return Selector(text=text, segments=tuple(segments))
