"""
Per-step outcome records and the run report.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from common.command_utils import log_erp_server
from setup.config_models import AppSettings


class StepOutcome(str, Enum):
    SKIPPED = "Skipped"
    SUCCEEDED = "Succeeded"
    SUCCEEDED_VIA_FALLBACK = "SucceededViaFallback"
    FAILED = "Failed"


@dataclass
class StepResult:
    name: str
    outcome: StepOutcome
    attempts: int = 0
    elapsed_ms: int = 0
    critical: bool = True
    detail: str = ""

    @property
    def degraded(self) -> bool:
        """A non-critical step failed and the run continued past it."""
        return self.outcome is StepOutcome.FAILED and not self.critical

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["outcome"] = self.outcome.value
        data["degraded"] = self.degraded
        return data


@dataclass
class RunReport:
    results: List[StepResult] = field(default_factory=list)
    aborted_at: Optional[str] = None
    error: Optional[str] = None

    def add(self, result: StepResult) -> None:
        self.results.append(result)

    @property
    def succeeded(self) -> bool:
        """True when no critical step failed and the run was not aborted."""
        return self.aborted_at is None and not any(
            r.outcome is StepOutcome.FAILED and r.critical
            for r in self.results
        )

    @property
    def degraded(self) -> List[StepResult]:
        return [r for r in self.results if r.degraded]

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def result_for(self, name: str) -> StepResult:
        for result in self.results:
            if result.name == name:
                return result
        raise KeyError(f"No result recorded for step '{name}'")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "aborted_at": self.aborted_at,
            "error": self.error,
            "steps": [r.to_dict() for r in self.results],
        }

    def write_json(
        self, path: Path, redact: Optional[Callable[[str], str]] = None
    ) -> None:
        """Write the report as JSON, passing the text through `redact` first."""
        text = json.dumps(self.to_dict(), indent=2)
        if redact is not None:
            text = redact(text)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)

    def log_summary(
        self,
        logger: Optional[logging.Logger] = None,
        app_settings: Optional[AppSettings] = None,
    ) -> None:
        symbols = app_settings.symbols if app_settings else {}
        log_erp_server("=== Run report ===", "info", logger, app_settings)
        for r in self.results:
            if r.outcome is StepOutcome.FAILED:
                label = "Degraded" if r.degraded else "Failed"
                level = "warning" if r.degraded else "error"
            else:
                label = r.outcome.value
                level = "info"
            log_erp_server(
                f"  {r.name:<32} {label:<22} attempts={r.attempts} elapsed={r.elapsed_ms}ms",
                level,
                logger,
                app_settings,
            )
        if self.succeeded and self.degraded:
            log_erp_server(
                f"{symbols.get('warning', '⚠️')} Completed with {len(self.degraded)} degraded step(s).",
                "warning",
                logger,
                app_settings,
            )
        elif self.succeeded:
            log_erp_server(
                f"{symbols.get('success', '✅')} All steps converged.",
                "info",
                logger,
                app_settings,
            )
        else:
            log_erp_server(
                f"{symbols.get('critical', '🔥')} Run aborted at step '{self.aborted_at}': {self.error}",
                "error",
                logger,
                app_settings,
            )
