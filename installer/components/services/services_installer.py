"""
Service activation module.

Enables and restarts nginx and supervisor so they pick up the generated
configuration.
"""

from typing import List

from installer.base_component import BaseComponent
from modular.probes import services_active
from modular.step import Command, CommandAction, Step

MANAGED_SERVICES = ("nginx", "supervisor")


class ServicesComponent(BaseComponent):
    """
    Enables and restarts the web-facing services. The restart always runs
    since earlier steps may have changed their configuration.
    """

    metadata = {"description": "nginx and supervisor services"}

    def steps(self) -> List[Step]:
        commands = []
        for service in MANAGED_SERVICES:
            commands += [
                Command(["systemctl", "enable", service], elevate=True),
                Command(["systemctl", "restart", service], elevate=True),
            ]
        return [
            Step(
                name="services",
                description="Enable and restart nginx and supervisor",
                action=CommandAction(
                    *commands,
                    description=f"systemctl enable/restart {' '.join(MANAGED_SERVICES)}",
                ),
                postcondition=services_active(MANAGED_SERVICES),
                retry_policy=self.default_retry_policy(),
            )
        ]
