# installer/plan.py
# -*- coding: utf-8 -*-
"""
Builds the ordered provisioning plan for the ERPNext stack.

Component order is dependency order: packages before runtimes, the
database before the bench, the bench before the proxy, and the smoke test
last.
"""

import logging
from typing import List, Optional, Type

from installer.base_component import BaseComponent
from installer.components.bench.bench_installer import BenchComponent
from installer.components.cleanup.cleanup_installer import CleanupComponent
from installer.components.mariadb.mariadb_installer import MariaDBComponent
from installer.components.nginx.nginx_installer import NginxComponent
from installer.components.nodejs.nodejs_installer import NodejsComponent
from installer.components.prerequisites.prerequisites_installer import (
    PrerequisitesComponent,
)
from installer.components.services.services_installer import ServicesComponent
from installer.components.smoke_test.smoke_test_installer import (
    SmokeTestComponent,
)
from installer.components.system_user.system_user_installer import (
    SystemUserComponent,
)
from installer.components.wkhtmltopdf.wkhtmltopdf_installer import (
    WkhtmltopdfComponent,
)
from modular.registry import StepRegistry
from modular.step import Plan
from setup.config_models import AppSettings, RunParameters

module_logger = logging.getLogger(__name__)

COMPONENTS: List[Type[BaseComponent]] = [
    CleanupComponent,
    PrerequisitesComponent,
    NodejsComponent,
    WkhtmltopdfComponent,
    MariaDBComponent,
    SystemUserComponent,
    BenchComponent,
    NginxComponent,
    ServicesComponent,
    SmokeTestComponent,
]


def enabled_components(
    app_settings: AppSettings,
    params: RunParameters,
    current_logger: Optional[logging.Logger] = None,
) -> List[BaseComponent]:
    """Components contributing steps to this run, in plan order."""
    logger_to_use = current_logger if current_logger else module_logger
    components = []
    for component_cls in COMPONENTS:
        component = component_cls(app_settings, params, logger_to_use)
        if not component.is_enabled():
            logger_to_use.debug(
                f"Component {component_cls.__name__} disabled for this run."
            )
            continue
        components.append(component)
    return components


def build_plan(
    app_settings: AppSettings,
    params: RunParameters,
    current_logger: Optional[logging.Logger] = None,
) -> Plan:
    """
    Assemble the plan from every enabled component.

    Raises:
        DuplicateStepError: Two components declared the same step name.
    """
    logger_to_use = current_logger if current_logger else module_logger
    registry = StepRegistry(logger=logger_to_use)
    for component in enabled_components(app_settings, params, logger_to_use):
        registry.register_all(component.steps())
    return registry.plan()
