"""Write-once table of values produced during a simulation run."""

from typing import Any, Dict, Iterator, Mapping, Optional, Union

from ..exceptions import DuplicateOutputError, InvalidNameError
from ..variables.types import ReferenceKey


KeyLike = Union[ReferenceKey, str]


class OutputTable(Mapping):
    """
    Maps ``(step, output)`` keys to resolved values.

    Document inputs are stored under keys whose step is None. The table only
    grows: writing an existing key raises DuplicateOutputError. String keys
    (``"Step.Output"`` or ``"Input"``) are accepted wherever a key is.
    """

    def __init__(self):
        self._values: Dict[ReferenceKey, Any] = {}

    @classmethod
    def from_inputs(cls, inputs: Optional[Dict[str, Any]] = None) -> "OutputTable":
        table = cls()
        for name, value in (inputs or {}).items():
            table.record(ReferenceKey(None, name), value)
        return table

    @staticmethod
    def _key(key: KeyLike) -> ReferenceKey:
        if isinstance(key, ReferenceKey):
            return key
        if isinstance(key, tuple) and len(key) == 2:
            return ReferenceKey(*key)
        return ReferenceKey.parse(key)

    def record(self, key: KeyLike, value: Any) -> None:
        key = self._key(key)
        if key in self._values:
            raise DuplicateOutputError(str(key))
        self._values[key] = value

    def record_outputs(self, step_name: str, outputs: Dict[str, Any]) -> None:
        for output_name, value in outputs.items():
            self.record(ReferenceKey(step_name, output_name), value)

    def __getitem__(self, key: KeyLike) -> Any:
        return self._values[self._key(key)]

    def __contains__(self, key: object) -> bool:
        try:
            return self._key(key) in self._values  # type: ignore[arg-type]
        except (InvalidNameError, TypeError):
            return False

    def __iter__(self) -> Iterator[ReferenceKey]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict keyed by ``Step.Output`` / ``Input`` strings."""
        return {str(key): value for key, value in self._values.items()}
