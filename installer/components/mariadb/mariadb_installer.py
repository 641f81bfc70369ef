# installer/components/mariadb/mariadb_installer.py
# -*- coding: utf-8 -*-
"""
MariaDB initialisation, root credentials, hardening and character set.

All SQL travels over stdin and the root password through MYSQL_PWD, so
neither appears on a command line.
"""

import re
from typing import Dict, List

from common.command_utils import CommandResult
from common.file_utils import write_file_elevated
from installer.base_component import BaseComponent
from modular.context import RunContext
from modular.probes import (
    command_output_matches,
    command_succeeds,
    file_has_content,
    path_exists,
    services_active,
)
from modular.step import Command, CommandAction, FunctionAction, Step

LOCAL_ROOT_HOSTS = "('localhost', '127.0.0.1', '::1')"

HARDEN_SQL = f"""\
DELETE FROM mysql.global_priv WHERE User='';
DELETE FROM mysql.global_priv WHERE User='root' AND Host NOT IN {LOCAL_ROOT_HOSTS};
DROP DATABASE IF EXISTS test;
DELETE FROM mysql.db WHERE Db='test' OR Db='test\\\\_%';
FLUSH PRIVILEGES;
"""

HARDENED_CHECK_SQL = (
    "SELECT "
    "(SELECT COUNT(*) FROM mysql.global_priv WHERE User='' "
    f"OR (User='root' AND Host NOT IN {LOCAL_ROOT_HOSTS})) + "
    "(SELECT COUNT(*) FROM information_schema.SCHEMATA WHERE SCHEMA_NAME='test')"
)


def sql_quote(value: str) -> str:
    """Quote a string literal for MariaDB."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def root_password_sql(ctx: RunContext) -> str:
    password = sql_quote(ctx.secret("db_root_password"))
    return (
        f"ALTER USER 'root'@'localhost' IDENTIFIED BY {password};\n"
        "FLUSH PRIVILEGES;\n"
    )


def mysql_root_env(ctx: RunContext) -> Dict[str, str]:
    return {"MYSQL_PWD": ctx.secret("db_root_password")}


class MariaDBComponent(BaseComponent):
    """
    Configures the MariaDB server installed with the prerequisites.
    """

    metadata = {"description": "MariaDB database engine"}

    def _root_login(self) -> Command:
        # TCP bypasses unix_socket authentication, so only the password counts.
        return Command(
            ["mysqladmin", "--protocol=tcp", "-h", "127.0.0.1", "-u", "root", "status"],
            env=mysql_root_env,
        )

    def _write_charset_config(self, ctx: RunContext) -> CommandResult:
        settings = ctx.app_settings.mariadb
        result = write_file_elevated(
            settings.charset_conf_path,
            settings.charset_conf_template,
            ctx.app_settings,
            mode="0644",
            current_logger=ctx.logger,
        )
        if not result.ok:
            return result
        return ctx.run_elevated(["systemctl", "restart", settings.service_name])

    def steps(self) -> List[Step]:
        settings = self.app_settings.mariadb
        policy = self.default_retry_policy()
        return [
            Step(
                name="mariadb-init",
                description="Initialise the MariaDB data directory",
                precondition=path_exists(f"{settings.datadir}/mysql"),
                action=CommandAction(
                    Command(
                        [
                            "mariadb-install-db",
                            "--user=mysql",
                            f"--datadir={settings.datadir}",
                        ],
                        elevate=True,
                    ),
                    description="mariadb-install-db",
                ),
                postcondition=path_exists(f"{settings.datadir}/mysql"),
                retry_policy=policy,
            ),
            Step(
                name="mariadb-service",
                description="Enable and start MariaDB",
                precondition=services_active([settings.service_name]),
                action=CommandAction(
                    Command(
                        ["systemctl", "enable", "--now", settings.service_name],
                        elevate=True,
                    ),
                    description=f"systemctl enable --now {settings.service_name}",
                ),
                postcondition=services_active([settings.service_name]),
                retry_policy=policy,
            ),
            Step(
                name="mariadb-root-password",
                description="Set the MariaDB root password",
                precondition=command_succeeds(self._root_login()),
                action=CommandAction(
                    Command(["mysql", "-u", "root"], elevate=True, input=root_password_sql),
                    description="ALTER USER root over the local socket",
                ),
                fallback_action=CommandAction(
                    Command(
                        lambda ctx: [
                            "mysqladmin",
                            "-u",
                            "root",
                            "password",
                            ctx.secret("db_root_password"),
                        ],
                        elevate=True,
                    ),
                    description="mysqladmin password",
                ),
                postcondition=command_succeeds(self._root_login()),
                retry_policy=policy,
            ),
            Step(
                name="mariadb-harden",
                description="Remove anonymous users, remote root and the test database",
                precondition=command_output_matches(
                    Command(
                        ["mysql", "-u", "root", "-N", "-B", "-e", HARDENED_CHECK_SQL],
                        elevate=True,
                        env=mysql_root_env,
                    ),
                    r"^0\s*$",
                    re.MULTILINE,
                ),
                action=CommandAction(
                    Command(
                        ["mysql", "-u", "root"],
                        elevate=True,
                        input=HARDEN_SQL,
                        env=mysql_root_env,
                    ),
                    description="secure installation SQL",
                ),
                retry_policy=policy,
            ),
            Step(
                name="mariadb-charset",
                description="Configure utf8mb4 as the server character set",
                precondition=file_has_content(
                    settings.charset_conf_path,
                    lambda ctx: ctx.app_settings.mariadb.charset_conf_template,
                ),
                action=FunctionAction(
                    self._write_charset_config,
                    description=f"write {settings.charset_conf_path} and restart {settings.service_name}",
                ),
                postcondition=file_has_content(
                    settings.charset_conf_path,
                    lambda ctx: ctx.app_settings.mariadb.charset_conf_template,
                ),
                retry_policy=policy,
            ),
        ]
