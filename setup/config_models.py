# setup/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for application configuration.

This module defines the structured settings for the provisioner,
including defaults, type annotations, and descriptions.
It utilizes Pydantic for data validation and settings management.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Default Static Values (can be overridden by config file/env/cli) ---
LOG_DIR_DEFAULT: str = "/var/log"
LOG_FILE_PREFIX_DEFAULT: str = "erpnext_install"
LOG_PREFIX_DEFAULT: str = "[ERP-SETUP]"

FRAPPE_BRANCH_DEFAULT: str = "version-15"
BENCH_DIR_NAME_DEFAULT: str = "frappe-bench"
HTTP_PORT_DEFAULT: int = 80

NODEJS_MAJOR_VERSION_DEFAULT: int = 18
NODESOURCE_SETUP_URL_DEFAULT: str = "https://deb.nodesource.com/setup_18.x"

WKHTMLTOPDF_VERSION_DEFAULT: str = "0.12.6.1"
WKHTMLTOPDF_BUILD_TAG_DEFAULT: str = "patched qt"
WKHTMLTOPDF_PRIMARY_URL_DEFAULT: str = (
    "https://github.com/wkhtmltopdf/packaging/releases/download/"
    "0.12.6.1-2/wkhtmltox_0.12.6.1-2.{codename}_{arch}.deb"
)
WKHTMLTOPDF_MIRROR_URL_DEFAULT: str = (
    "https://downloads.wkhtmltopdf.org/0.12/0.12.6.1/"
    "wkhtmltox_0.12.6.1-2.{codename}_{arch}.deb"
)

MARIADB_CHARSET_CONF_PATH_DEFAULT: str = (
    "/etc/mysql/mariadb.conf.d/99-erpnext.cnf"
)
MARIADB_CHARSET_CONF_DEFAULT: str = """\
[mysqld]
character-set-client-handshake = FALSE
character-set-server = utf8mb4
collation-server = utf8mb4_unicode_ci
[mysql]
default-character-set = utf8mb4
"""

NGINX_SITES_AVAILABLE_DIR_DEFAULT: str = "/etc/nginx/sites-available"
NGINX_SITES_ENABLED_DIR_DEFAULT: str = "/etc/nginx/sites-enabled"

SMOKE_TEST_MARKER_DEFAULT: str = "ERPNext"

SYSTEM_PACKAGES_DEFAULT: List[str] = [
    "software-properties-common",
    "apt-transport-https",
    "ca-certificates",
    "gnupg",
    "lsb-release",
    "python3.10",
    "python3.10-dev",
    "python3.10-venv",
    "python3-pip",
    "git",
    "curl",
    "wget",
    "xvfb",
    "libfontconfig",
    "libmysqlclient-dev",
    "libxrender1",
    "libxext6",
    "xfonts-75dpi",
    "redis-server",
    "nginx",
    "mariadb-server",
    "mariadb-client",
    "cron",
    "supervisor",
]

REQUIRED_COMMANDS_DEFAULT: List[str] = [
    "python3.10",
    "git",
    "redis-server",
    "nginx",
    "mariadb",
    "supervisorctl",
]

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
}


class AppSpec(BaseModel):
    """A dependent Frappe application fetched by the bench tool."""

    app_name: str = Field(description="Directory/app name inside the bench.")
    fetch_argument: str = Field(
        description="Argument passed to 'bench get-app' (short alias, URL, or qualified name)."
    )
    branch: Optional[str] = Field(
        default=None, description="Branch passed as '--branch', if any."
    )
    install: bool = Field(
        default=True, description="Install the app into the site after fetching."
    )


APPS_DEFAULT: List[AppSpec] = [
    AppSpec(app_name="payments", fetch_argument="payments", install=False),
    AppSpec(
        app_name="erpnext",
        fetch_argument="erpnext",
        branch=FRAPPE_BRANCH_DEFAULT,
    ),
    AppSpec(
        app_name="hrms", fetch_argument="hrms", branch=FRAPPE_BRANCH_DEFAULT
    ),
    AppSpec(app_name="chat", fetch_argument="chat"),
]


class RetrySettings(BaseModel):
    """Default retry policy applied to plan steps."""

    max_attempts: int = Field(default=3, ge=1)
    backoff_seconds: int = Field(default=5, ge=0)


class NodejsSettings(BaseSettings):
    """Node.js runtime settings."""

    model_config = SettingsConfigDict(env_prefix="ERP_NODEJS_", extra="ignore")

    major_version: int = Field(default=NODEJS_MAJOR_VERSION_DEFAULT, ge=1)
    nodesource_setup_url: str = Field(default=NODESOURCE_SETUP_URL_DEFAULT)


class WkhtmltopdfSettings(BaseSettings):
    """PDF renderer settings."""

    model_config = SettingsConfigDict(
        env_prefix="ERP_WKHTMLTOPDF_", extra="ignore"
    )

    version: str = Field(default=WKHTMLTOPDF_VERSION_DEFAULT)
    build_tag: str = Field(
        default=WKHTMLTOPDF_BUILD_TAG_DEFAULT,
        description="Case-insensitive tag expected in 'wkhtmltopdf -V' output.",
    )
    primary_url: str = Field(
        default=WKHTMLTOPDF_PRIMARY_URL_DEFAULT,
        description="Package URL template. Supports {codename} and {arch}.",
    )
    mirror_url: str = Field(default=WKHTMLTOPDF_MIRROR_URL_DEFAULT)
    distro_codename: str = Field(default="jammy")
    supported_architectures: List[str] = Field(
        default_factory=lambda: ["amd64", "arm64"]
    )
    download_path: str = Field(default="/tmp/wkhtmltox.deb")


class MariaDBSettings(BaseSettings):
    """MariaDB engine settings."""

    model_config = SettingsConfigDict(env_prefix="ERP_MARIADB_", extra="ignore")

    service_name: str = Field(default="mariadb")
    datadir: str = Field(default="/var/lib/mysql")
    charset_conf_path: str = Field(default=MARIADB_CHARSET_CONF_PATH_DEFAULT)
    charset_conf_template: str = Field(default=MARIADB_CHARSET_CONF_DEFAULT)


class BenchSettings(BaseSettings):
    """Frappe bench bootstrap settings."""

    model_config = SettingsConfigDict(env_prefix="ERP_BENCH_", extra="ignore")

    frappe_branch: str = Field(default=FRAPPE_BRANCH_DEFAULT)
    bench_dir_name: str = Field(default=BENCH_DIR_NAME_DEFAULT)
    pip_extra_args: List[str] = Field(
        default_factory=list,
        description="Extra arguments for 'pip3 install frappe-bench', e.g. --break-system-packages.",
    )
    developer_mode: bool = Field(default=True)
    production_setup: bool = Field(default=True)
    frontend_packages: List[str] = Field(
        default_factory=lambda: [
            "less@4",
            "stylus@0.63.0",
            "vue-template-compiler@2.7.16",
        ]
    )
    apps: List[AppSpec] = Field(
        default_factory=lambda: [app.model_copy() for app in APPS_DEFAULT]
    )
    init_timeout_seconds: int = Field(default=3600, ge=1)


class NginxSettings(BaseSettings):
    """Reverse proxy settings."""

    model_config = SettingsConfigDict(env_prefix="ERP_NGINX_", extra="ignore")

    sites_available_dir: str = Field(default=NGINX_SITES_AVAILABLE_DIR_DEFAULT)
    sites_enabled_dir: str = Field(default=NGINX_SITES_ENABLED_DIR_DEFAULT)
    listen_port: int = Field(default=HTTP_PORT_DEFAULT, ge=1, le=65535)
    upstream_port: int = Field(default=8000, ge=1, le=65535)
    socketio_port: int = Field(default=9000, ge=1, le=65535)
    client_max_body_size: str = Field(default="20M")


class SmokeTestSettings(BaseSettings):
    """End-of-run HTTP probe settings."""

    model_config = SettingsConfigDict(
        env_prefix="ERP_SMOKE_TEST_", extra="ignore"
    )

    url_template: str = Field(
        default="http://{site_name}", description="Supports {site_name}."
    )
    marker: str = Field(default=SMOKE_TEST_MARKER_DEFAULT)
    max_attempts: int = Field(default=3, ge=1)
    backoff_seconds: int = Field(default=5, ge=0)
    request_timeout_seconds: float = Field(default=10.0, gt=0)


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="ERP_", env_nested_delimiter="__", extra="ignore"
    )

    log_dir: str = Field(default=LOG_DIR_DEFAULT)
    log_file_prefix: str = Field(default=LOG_FILE_PREFIX_DEFAULT)
    log_format: str = Field(
        default="text", description="Log file format: 'text' or 'json'."
    )
    log_prefix: str = Field(
        default=LOG_PREFIX_DEFAULT,
        description="Prefix for log messages from the main installer script.",
    )
    command_timeout_seconds: int = Field(default=1800, ge=1)
    run_timeout_seconds: Optional[int] = Field(
        default=None, ge=1, description="Overall run deadline; unlimited when unset."
    )
    input_timeout_seconds: Optional[int] = Field(default=None, ge=1)
    input_max_attempts: int = Field(default=3, ge=1)

    upgrade_packages: bool = Field(default=True)
    clean_previous_install: bool = Field(default=False)
    require_new_account: bool = Field(
        default=False,
        description="Fail pre-flight if the system account already exists.",
    )
    system_packages: List[str] = Field(
        default_factory=lambda: list(SYSTEM_PACKAGES_DEFAULT)
    )
    required_commands: List[str] = Field(
        default_factory=lambda: list(REQUIRED_COMMANDS_DEFAULT)
    )

    retry: RetrySettings = Field(default_factory=RetrySettings)
    nodejs: NodejsSettings = Field(default_factory=NodejsSettings)
    wkhtmltopdf: WkhtmltopdfSettings = Field(
        default_factory=WkhtmltopdfSettings
    )
    mariadb: MariaDBSettings = Field(default_factory=MariaDBSettings)
    bench: BenchSettings = Field(default_factory=BenchSettings)
    nginx: NginxSettings = Field(default_factory=NginxSettings)
    smoke_test: SmokeTestSettings = Field(default_factory=SmokeTestSettings)

    # Static symbols, could also be loaded from a separate static config if preferred
    symbols: Dict[str, str] = Field(
        default_factory=lambda: dict(SYMBOLS_DEFAULT)
    )

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("text", "json"):
            raise ValueError("log_format must be 'text' or 'json'")
        return value


class RunParameters(BaseSettings):
    """
    Per-run parameters. Values may come from the environment
    (ERPNEXT_ prefix); anything missing is collected interactively.
    """

    model_config = SettingsConfigDict(env_prefix="ERPNEXT_", extra="ignore")

    system_user: Optional[str] = None
    system_user_password: Optional[SecretStr] = None
    db_root_password: Optional[SecretStr] = None
    admin_password: Optional[SecretStr] = None
    site_name: Optional[str] = None
    create_new_user: bool = True

    def secret_values(self) -> List[str]:
        """Plain values of every secret currently held."""
        values = []
        for secret in (
            self.system_user_password,
            self.db_root_password,
            self.admin_password,
        ):
            if secret is not None and secret.get_secret_value():
                values.append(secret.get_secret_value())
        return values

    def clear_secrets(self) -> None:
        """Drop references to secret values once the run is over."""
        self.system_user_password = None
        self.db_root_password = None
        self.admin_password = None
