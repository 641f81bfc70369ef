"""
wkhtmltopdf installer module.

Frappe renders PDFs with the "patched qt" build of wkhtmltopdf, which the
distribution packages do not ship. The upstream .deb for the host
architecture is downloaded and installed with dpkg.
"""

from typing import List

from common.command_utils import CommandResult, log_erp_server
from common.system_utils import get_dpkg_architecture
from installer.base_component import APT_ENV, BaseComponent
from modular.context import RunContext
from modular.errors import EnvironmentMismatchError
from modular.step import Action, CheckResult, FunctionAction, Probe, Step


def wkhtmltopdf_build(version: str, build_tag: str, strict: bool) -> Probe:
    """
    Probe `wkhtmltopdf -V` for the required version and build tag.

    With `strict`, a binary of another version or build raises
    EnvironmentMismatchError. Only the install action checks strictly,
    once dpkg has succeeded.
    """

    def probe(ctx: RunContext) -> CheckResult:
        result = ctx.run(["wkhtmltopdf", "-V"], quiet=True)
        if not result.ok:
            return CheckResult.unsatisfied("wkhtmltopdf is not installed")
        output = result.output
        if version in output and build_tag.lower() in output.lower():
            return CheckResult.satisfied(output)
        message = f"wkhtmltopdf reports '{output}', expected {version} ({build_tag})"
        if strict:
            raise EnvironmentMismatchError(message)
        return CheckResult.unsatisfied(message)

    return probe


class WkhtmltopdfComponent(BaseComponent):
    """
    Installer for the wkhtmltopdf PDF renderer.
    """

    metadata = {"description": "wkhtmltopdf with patched qt"}

    def package_url(self, url_template: str, arch: str) -> str:
        return url_template.format(
            codename=self.app_settings.wkhtmltopdf.distro_codename, arch=arch
        )

    def _download_and_install(self, url_template: str) -> Action:
        settings = self.app_settings.wkhtmltopdf
        verify = wkhtmltopdf_build(settings.version, settings.build_tag, strict=True)

        def install(ctx: RunContext) -> CommandResult:
            arch = get_dpkg_architecture(ctx.app_settings, ctx.logger)
            if arch not in settings.supported_architectures:
                raise EnvironmentMismatchError(
                    f"Unsupported architecture for wkhtmltopdf: {arch or 'unknown'}"
                )
            url = self.package_url(url_template, arch)
            result = ctx.run(
                ["wget", "-q", "-O", settings.download_path, url]
            )
            if not result.ok:
                return result
            result = ctx.run_elevated(
                ["dpkg", "-i", settings.download_path], env=APT_ENV
            )
            if result.ok:
                verify(ctx)
                return result
            log_erp_server(
                f"{ctx.app_settings.symbols.get('warning', '⚠️')} dpkg -i reported missing dependencies; repairing.",
                "warning",
                ctx.logger,
                ctx.app_settings,
            )
            result = ctx.run_elevated(
                ["apt-get", "install", "-f", "-y"], env=APT_ENV
            )
            if result.ok:
                verify(ctx)
            return result

        return FunctionAction(install, description=f"download {url_template}")

    def steps(self) -> List[Step]:
        settings = self.app_settings.wkhtmltopdf
        return [
            Step(
                name="wkhtmltopdf",
                description=f"Install wkhtmltopdf {settings.version} ({settings.build_tag})",
                precondition=wkhtmltopdf_build(
                    settings.version, settings.build_tag, strict=False
                ),
                action=self._download_and_install(settings.primary_url),
                fallback_action=self._download_and_install(settings.mirror_url),
                postcondition=wkhtmltopdf_build(
                    settings.version, settings.build_tag, strict=False
                ),
                retry_policy=self.default_retry_policy(),
            )
        ]
