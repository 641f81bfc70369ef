"""
Registry for provisioning steps.

Steps are registered in the order they must run; later steps may depend on
what earlier ones produced (the database must exist before the site is
created on it). The registry freezes into a Plan for a single run.
"""

import logging
from typing import Dict, Iterable, List, Optional

from modular.errors import DuplicateStepError
from modular.step import Plan, Step


class StepRegistry:
    """
    Ordered registry of uniquely named steps.

    Registration order is execution order.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._steps: Dict[str, Step] = {}
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    def register(self, step: Step) -> Step:
        """
        Register a step at the end of the plan.

        Raises:
            DuplicateStepError: If a step with the same name is already registered.
        """
        if step.name in self._steps:
            raise DuplicateStepError(
                f"Step with name '{step.name}' already registered"
            )
        self._steps[step.name] = step
        self.logger.debug(f"Step '{step.name}' registered.")
        return step

    def register_all(self, steps: Iterable[Step]) -> None:
        for step in steps:
            self.register(step)

    def get_step(self, name: str) -> Step:
        """
        Raises:
            KeyError: If no step with the given name is registered.
        """
        if name not in self._steps:
            raise KeyError(f"No step registered with name '{name}'")
        return self._steps[name]

    def names(self) -> List[str]:
        return list(self._steps)

    def __contains__(self, name: object) -> bool:
        return name in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def plan(self) -> Plan:
        """Return the registered steps, in registration order, as an immutable Plan."""
        return Plan(list(self._steps.values()))
