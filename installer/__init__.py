"""
ERPNext provisioning plan.

This package turns the application settings and run parameters into the
ordered list of steps the convergence engine executes.
"""

from installer.base_component import BaseComponent
from installer.plan import COMPONENTS, build_plan

__all__ = ["BaseComponent", "COMPONENTS", "build_plan"]
