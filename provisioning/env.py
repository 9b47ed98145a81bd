# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from collections.abc import Callable
from dataclasses import dataclass
from logging import getLogger
from os import environ
from pathlib import Path
from typing import Self, TypeVar

# project
from provisioning.errors import MissingConfigOptionError

T = TypeVar("T")

log = getLogger(__name__)


# Settings
CLIENT_ID_SETTING = "CLIENT_ID"
CLIENT_SECRET_SETTING = "CLIENT_SECRET"
TENANT_ID_SETTING = "TENANT_ID"
SUBSCRIPTION_ID_SETTING = "SUBSCRIPTION_ID"
REGION_SETTING = "REGION"
LOG_LEVEL_SETTING = "LOG_LEVEL"
WARMUP_DELAY_SETTING = "WARMUP_DELAY_SECONDS"
WARMUP_POLL_TIMEOUT_SETTING = "WARMUP_POLL_TIMEOUT"
CONCURRENT_DEPLOYMENTS_SETTING = "CONCURRENT_DEPLOYMENTS"
PUBLIC_GIT_REPO_SETTING = "PUBLIC_GIT_REPO"
PUBLIC_GIT_BRANCH_SETTING = "PUBLIC_GIT_BRANCH"
GITHUB_REPO_SETTING = "GITHUB_REPO"
GITHUB_BRANCH_SETTING = "GITHUB_BRANCH"
GITHUB_TOKEN_SETTING = "GITHUB_TOKEN"
WEB_DEPLOY_PACKAGE_URI_SETTING = "WEB_DEPLOY_PACKAGE_URI"
ASSET_DIR_SETTING = "ASSET_DIR"

# Defaults
DEFAULT_REGION = "eastus"
DEFAULT_WARMUP_DELAY_SECONDS = 5.0
DEFAULT_PUBLIC_GIT_REPO = "https://github.com/jianghaolu/square-function-app-sample"
DEFAULT_BRANCH = "master"
DEFAULT_WEB_DEPLOY_PACKAGE_URI = (
    "https://github.com/Azure/azure-libraries-for-net/raw/master/Samples/Asset/square-function-app.zip"
)
DEFAULT_ASSET_DIR = Path(__file__).parent / "assets"


def get_config_option(name: str) -> str:
    """Get a configuration option from the environment or raise a helpful error"""
    if option := environ.get(name):
        return option
    raise MissingConfigOptionError(name)


def parse_config_option(name: str, parse: Callable[[str], T | None], default: T) -> T:
    """Get a configuration option from the environment, parse it, or return a default"""
    try:
        value = environ.get(name)
        if value is None:
            return default
        result = parse(value)
        if result is None:
            log.error(f"Invalid value for configuration option {name}: {value}")
            return default
        return result
    except ValueError:
        log.error(f"Invalid value for configuration option {name}: {environ.get(name)}")
        return default


def is_truthy(setting_name: str) -> bool:
    return environ.get(setting_name, "").lower().strip() in {"t", "true", "1", "y", "yes"}


def positive_float(value: str) -> float | None:
    parsed = float(value)
    return parsed if parsed >= 0 else None


@dataclass(frozen=True, repr=False)
class Settings:
    """Everything the workflow needs from the environment, read once at startup"""

    client_id: str
    client_secret: str
    tenant_id: str
    subscription_id: str
    region: str = DEFAULT_REGION
    warmup_delay: float = DEFAULT_WARMUP_DELAY_SECONDS
    warmup_poll_timeout: float | None = None
    concurrent_deployments: bool = False
    public_git_repo: str = DEFAULT_PUBLIC_GIT_REPO
    public_git_branch: str = DEFAULT_BRANCH
    github_repo: str | None = None
    github_branch: str = DEFAULT_BRANCH
    github_token: str | None = None
    web_deploy_package_uri: str = DEFAULT_WEB_DEPLOY_PACKAGE_URI
    asset_dir: Path = DEFAULT_ASSET_DIR

    @classmethod
    def from_env(cls) -> Self:
        return cls(
            client_id=get_config_option(CLIENT_ID_SETTING),
            client_secret=get_config_option(CLIENT_SECRET_SETTING),
            tenant_id=get_config_option(TENANT_ID_SETTING),
            subscription_id=get_config_option(SUBSCRIPTION_ID_SETTING),
            region=environ.get(REGION_SETTING) or DEFAULT_REGION,
            warmup_delay=parse_config_option(WARMUP_DELAY_SETTING, positive_float, DEFAULT_WARMUP_DELAY_SECONDS),
            warmup_poll_timeout=parse_config_option(WARMUP_POLL_TIMEOUT_SETTING, positive_float, None),
            concurrent_deployments=is_truthy(CONCURRENT_DEPLOYMENTS_SETTING),
            public_git_repo=environ.get(PUBLIC_GIT_REPO_SETTING) or DEFAULT_PUBLIC_GIT_REPO,
            public_git_branch=environ.get(PUBLIC_GIT_BRANCH_SETTING) or DEFAULT_BRANCH,
            github_repo=environ.get(GITHUB_REPO_SETTING) or None,
            github_branch=environ.get(GITHUB_BRANCH_SETTING) or DEFAULT_BRANCH,
            github_token=environ.get(GITHUB_TOKEN_SETTING) or None,
            web_deploy_package_uri=environ.get(WEB_DEPLOY_PACKAGE_URI_SETTING) or DEFAULT_WEB_DEPLOY_PACKAGE_URI,
            asset_dir=Path(environ[ASSET_DIR_SETTING]) if environ.get(ASSET_DIR_SETTING) else DEFAULT_ASSET_DIR,
        )

    def __repr__(self) -> str:
        return (
            f"Settings(subscription_id={self.subscription_id!r}, tenant_id={self.tenant_id!r}, "
            f"region={self.region!r}, client_id={self.client_id!r})"
        )
