"""
Base component class for all component modules.

This module provides the base class that all component modules must inherit from.
A component contributes an ordered list of Steps to the provisioning plan; it
never executes anything itself.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from common.system_utils import current_user
from modular.step import RetryPolicy, Step
from setup.config_models import AppSettings, RunParameters

APT_ENV: Dict[str, str] = {"DEBIAN_FRONTEND": "noninteractive"}


class BaseComponent(ABC):
    """
    Base class for all component modules.

    Subclasses implement `steps()`; the plan builder concatenates the steps of
    every enabled component in order.
    """

    # Class-level metadata that can be overridden by subclasses
    metadata: Dict[str, Any] = {
        "description": "",  # Description of the component
    }

    def __init__(
        self,
        app_settings: AppSettings,
        params: RunParameters,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the component.

        Args:
            app_settings: The application settings.
            params: Run parameters (only non-secret fields are read at build time).
            logger: Optional logger instance. If not provided, a new logger will be created.
        """
        self.app_settings = app_settings
        self.params = params
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def system_user(self) -> str:
        return self.params.system_user or current_user()

    @property
    def home_dir(self) -> str:
        return f"/home/{self.system_user}"

    @property
    def bench_dir(self) -> str:
        return f"{self.home_dir}/{self.app_settings.bench.bench_dir_name}"

    def default_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.app_settings.retry.max_attempts,
            backoff_seconds=self.app_settings.retry.backoff_seconds,
        )

    def is_enabled(self) -> bool:
        """Whether the component contributes steps for this run."""
        return True

    @abstractmethod
    def steps(self) -> List[Step]:
        """
        Build the component's steps.

        Returns:
            Steps in the order they must run.
        """
        pass
