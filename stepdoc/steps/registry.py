"""
Step registry for dispatching on the action discriminator.

Maps action names to step classes so definitions read from files can be
turned into concrete steps.
"""

import logging
from typing import Any, Dict, List, Optional, Type

from ..exceptions import DefinitionError
from .base import Step
from .execute_script import ExecuteScriptStep
from .run_command import RunCommandStep
from .run_script import RunScriptStep
from .sleep import SleepStep


logger = logging.getLogger(__name__)


class StepRegistry:
    """
    Registry of step kinds keyed by action.

    Built-in kinds are always available; additional kinds can be registered
    and take precedence over built-ins with the same action.
    """

    def __init__(self):
        """Initialize registry with the built-in step kinds."""
        self._steps: Dict[str, Type[Step]] = {}
        self._builtin_steps = self._load_builtin_steps()

    def _load_builtin_steps(self) -> Dict[str, Type[Step]]:
        return {
            step_class.action: step_class
            for step_class in (RunScriptStep, RunCommandStep, SleepStep, ExecuteScriptStep)
        }

    def register(self, step_class: Type[Step]) -> None:
        """
        Register a step kind.

        Args:
            step_class: Step subclass with a non-empty ``action``

        Raises:
            DefinitionError: If the class is not a usable step kind
        """
        if not isinstance(step_class, type) or not issubclass(step_class, Step):
            raise DefinitionError(f"Cannot register {step_class!r}: not a Step subclass")
        if not step_class.action:
            raise DefinitionError(f"Cannot register {step_class.__name__}: no action declared")

        self._steps[step_class.action] = step_class
        logger.debug(f"Registered step kind: {step_class.action}")

    def get(self, action: str) -> Optional[Type[Step]]:
        """Return the step class for an action, or None."""
        return self._steps.get(action) or self._builtin_steps.get(action)

    def exists(self, action: str) -> bool:
        return action in self._steps or action in self._builtin_steps

    def list_actions(self) -> List[str]:
        return sorted(set(self._steps) | set(self._builtin_steps))

    def create(self, action: str, name: str, **kwargs: Any) -> Step:
        """
        Construct a step of the given action.

        Raises:
            DefinitionError: If the action is unknown or construction fails
        """
        step_class = self.get(action)
        if step_class is None:
            raise DefinitionError(f"Step '{name}': unknown action '{action}'. Known: {self.list_actions()}")
        return step_class(name, **kwargs)
