"""
Node.js installer module.

Installs the pinned Node.js major release from NodeSource (falling back to
the distribution packages) and the yarn package manager the bench tool
builds assets with.
"""

import re
from typing import List

from installer.base_component import APT_ENV, BaseComponent
from installer.components.prerequisites.prerequisites_installer import apt_get
from modular.context import RunContext
from modular.errors import EnvironmentMismatchError
from modular.probes import commands_exist
from modular.step import CheckResult, Command, CommandAction, Probe, Step

NODE_VERSION_PATTERN = re.compile(r"v?(\d+)\.\d+\.\d+")


def node_major_version(expected_major: int, strict: bool) -> Probe:
    """
    Probe `node -v` against the required major version.

    With `strict`, a node binary of another major version raises
    EnvironmentMismatchError; otherwise it is reported as unsatisfied so the
    install action can replace it.
    """

    def probe(ctx: RunContext) -> CheckResult:
        result = ctx.run(["node", "-v"], quiet=True)
        if not result.ok:
            return CheckResult.unsatisfied("node is not installed")
        match = NODE_VERSION_PATTERN.search(result.stdout)
        if not match:
            return CheckResult.check_failed(
                f"unrecognised node version output: {result.output!r}"
            )
        major = int(match.group(1))
        if major == expected_major:
            return CheckResult.satisfied(f"node {result.stdout.strip()}")
        message = f"Node.js {result.stdout.strip()} is installed but major version {expected_major} is required"
        if strict:
            raise EnvironmentMismatchError(message)
        return CheckResult.unsatisfied(message)

    return probe


class NodejsComponent(BaseComponent):
    """
    Installer for the Node.js JavaScript runtime and yarn.
    """

    metadata = {"description": "Node.js JavaScript runtime"}

    def steps(self) -> List[Step]:
        nodejs = self.app_settings.nodejs
        return [
            Step(
                name="nodejs-runtime",
                description=f"Install Node.js {nodejs.major_version}.x",
                precondition=node_major_version(nodejs.major_version, strict=False),
                action=CommandAction(
                    Command(
                        f"curl -fsSL {nodejs.nodesource_setup_url} | bash -",
                        shell=True,
                        elevate=True,
                        env=APT_ENV,
                    ),
                    apt_get("install", "-y", "nodejs"),
                    description="NodeSource repository setup and apt-get install nodejs",
                ),
                fallback_action=CommandAction(
                    apt_get("install", "-y", "nodejs", "npm"),
                    description="distribution nodejs and npm packages",
                ),
                postcondition=node_major_version(nodejs.major_version, strict=True),
                retry_policy=self.default_retry_policy(),
            ),
            Step(
                name="yarn",
                description="Install the yarn package manager",
                precondition=commands_exist(["yarn"]),
                action=CommandAction(
                    Command(["npm", "install", "-g", "yarn"], elevate=True),
                    description="npm install -g yarn",
                ),
                fallback_action=CommandAction(
                    apt_get("install", "-y", "npm"),
                    Command(["npm", "install", "-g", "yarn"], elevate=True),
                    description="apt-get install npm, then npm install -g yarn",
                ),
                postcondition=commands_exist(["yarn"]),
                retry_policy=self.default_retry_policy(),
            ),
        ]
