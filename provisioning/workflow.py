# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from asyncio import gather
from contextlib import AbstractAsyncContextManager
from logging import ERROR, basicConfig, getLogger
from os import environ
from pathlib import Path
from types import TracebackType
from typing import NamedTuple, Self

# 3p
from aiohttp import ClientSession
from azure.core.credentials_async import AsyncTokenCredential
from azure.identity.aio import ClientSecretCredential
from azure.mgmt.resource.resources.models import ResourceGroup
from azure.mgmt.web.models import AppServicePlan, Site

# project
from provisioning.client.app_service_client import LOCAL_GIT_SCM_TYPE, AppServiceClient, SiteSettings
from provisioning.client.ftp import FtpUpload, deploy_via_ftp
from provisioning.client.git import deploy_via_local_git
from provisioning.client.publishing_profile import FTP_FORMAT, WEB_DEPLOY_FORMAT
from provisioning.common import (
    HOSTING_PLAN_PREFIX,
    RESOURCE_GROUP_PREFIX,
    SITE_PREFIXES,
    SQUARE_FUNCTION_PATH,
    create_random_name,
    get_site_url,
    get_storage_account_name,
    now,
)
from provisioning.concurrency import run_all
from provisioning.env import LOG_LEVEL_SETTING, Settings
from provisioning.errors import CleanupSkipped, ConfigurationError, WorkflowError
from provisioning.warmup import poll_until_ready, warm_up

SQUARE_APP_DIR = "square-function-app"
LOCAL_GIT_APP_DIR = "square-function-app-local-git"

# what each function app is asked to square during warm up, the GitHub app only gets a GET of its root
FTP_SQUARE_INPUT = "625"
LOCAL_GIT_SQUARE_INPUT = "725"
PUBLIC_GIT_SQUARE_INPUT = "825"
WEB_DEPLOY_SQUARE_INPUT = "925"

NO_CLEANUP_MESSAGE = "Did not create any resources in Azure. No clean up is necessary"

log = getLogger(__name__)

# silence azure logging except for errors
getLogger("azure").setLevel(ERROR)


class RunResult(NamedTuple):
    error: Exception | None
    cleanup_error: Exception | None
    responses: dict[str, str | Exception]

    @property
    def succeeded(self) -> bool:
        return self.error is None


def get_ftp_uploads(asset_dir: Path) -> list[FtpUpload]:
    app_dir = asset_dir / SQUARE_APP_DIR
    return [
        FtpUpload(app_dir / "host.json", "host.json"),
        FtpUpload(app_dir / "square" / "function.json", "square/function.json"),
        FtpUpload(app_dir / "square" / "index.js", "square/index.js"),
    ]


class ProvisioningWorkflow(AbstractAsyncContextManager["ProvisioningWorkflow"]):
    """Creates a resource group with five function apps, deploys each one a different way,
    warms them up and always deletes the resource group at the end"""

    def __init__(self, settings: Settings, credential: AsyncTokenCredential) -> None:
        self.settings = settings
        self.region = settings.region
        self.client = AppServiceClient(credential, settings.subscription_id)
        self.http = ClientSession()
        self.log = log.getChild(self.__class__.__name__)

        self.resource_group_name = create_random_name(RESOURCE_GROUP_PREFIX)
        self.plan_name = create_random_name(HOSTING_PLAN_PREFIX)
        self.storage_account_name = get_storage_account_name()
        self.site_names = [create_random_name(prefix) for prefix in SITE_PREFIXES]

        self.resource_group: ResourceGroup | None = None
        self.plan: AppServicePlan | None = None
        self.site_settings: SiteSettings | None = None
        self.responses: dict[str, str | Exception] = {}

    async def __aenter__(self) -> Self:
        await gather(self.client.__aenter__(), self.http.__aenter__())
        return self

    async def __aexit__(
        self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: TracebackType | None
    ) -> None:
        await gather(
            self.client.__aexit__(exc_type, exc_val, exc_tb),
            self.http.__aexit__(exc_type, exc_val, exc_tb),
        )

    async def run(self) -> RunResult:
        error: Exception | None = None
        try:
            await self.provision()
        except WorkflowError as e:
            self.log.exception("Provisioning stopped (%s): %s", e.kind, e)
            error = e
        except Exception as e:
            self.log.exception("Unexpected error while provisioning")
            error = e
        finally:
            cleanup_error = await self.cleanup()
        return RunResult(error, cleanup_error, dict(self.responses))

    @property
    def group(self) -> ResourceGroup:
        if self.resource_group is None:
            raise RuntimeError("The resource group has not been created yet")
        return self.resource_group

    async def provision(self) -> None:
        self.resource_group = await self.client.create_resource_group(self.resource_group_name, self.region)
        connection_string = await self.client.create_storage_account(
            self.resource_group, self.storage_account_name, self.region
        )
        self.site_settings = SiteSettings(storage_connection_string=connection_string)
        self.plan = await self.client.create_hosting_plan(self.group, self.plan_name, self.region)

        ftp_site, local_git_site, public_git_site, github_site, web_deploy_site = self.site_names
        await run_all(
            [
                lambda: self.deploy_via_ftp(ftp_site),
                lambda: self.deploy_via_local_git(local_git_site),
                lambda: self.deploy_via_public_git(public_git_site),
                lambda: self.deploy_via_github_ci(github_site),
                lambda: self.deploy_via_web_deploy(web_deploy_site),
            ],
            self.log,
            "Failed to deploy function apps",
            concurrent=self.settings.concurrent_deployments,
        )

    async def create_site(self, name: str, scm_type: str | None = None) -> Site:
        if self.plan is None or self.site_settings is None:
            raise RuntimeError("The app service plan must be created before any function app")
        self.log.info("Creating function app %s in resource group %s...", name, self.group.name)
        site = await self.client.create_site(
            self.group, name, self.region, self.plan, self.site_settings._replace(scm_type=scm_type)
        )
        self.log.info("Created function app %s", site.name)
        return site

    async def deploy_via_ftp(self, name: str) -> None:
        site = await self.create_site(name)
        await self.client.allow_basic_publishing(self.group, site)

        self.log.info("Deploying a function app to %s through FTP...", name)
        profile = await self.client.fetch_publishing_profile(self.group, site, FTP_FORMAT)
        await deploy_via_ftp(profile, get_ftp_uploads(self.settings.asset_dir))
        await self.client.sync_function_triggers(self.group, site)
        self.log.info("Deployment square app to function app %s completed", name)

        await self.warm_up(name, SQUARE_FUNCTION_PATH, FTP_SQUARE_INPUT)

    async def deploy_via_local_git(self, name: str) -> None:
        site = await self.create_site(name, scm_type=LOCAL_GIT_SCM_TYPE)
        await self.client.allow_basic_publishing(self.group, site)

        self.log.info("Deploying a local function app to %s through Git...", name)
        profile = await self.client.fetch_publishing_profile(self.group, site, WEB_DEPLOY_FORMAT)
        await deploy_via_local_git(profile, self.settings.asset_dir / LOCAL_GIT_APP_DIR)
        self.log.info("Deployment to function app %s completed", name)

        await self.warm_up(name, SQUARE_FUNCTION_PATH, LOCAL_GIT_SQUARE_INPUT)

    async def deploy_via_public_git(self, name: str) -> None:
        site = await self.create_site(name)
        await self.client.link_external_git_source(
            self.group, site, self.settings.public_git_repo, self.settings.public_git_branch
        )
        self.log.info("Linked %s to function app %s", self.settings.public_git_repo, name)

        await self.warm_up(name, SQUARE_FUNCTION_PATH, PUBLIC_GIT_SQUARE_INPUT)

    async def deploy_via_github_ci(self, name: str) -> None:
        site = await self.create_site(name)
        if self.settings.github_repo and self.settings.github_token:
            await self.client.link_github_ci(
                self.group,
                site,
                self.settings.github_repo,
                self.settings.github_branch,
                self.settings.github_token,
            )
        else:
            self.log.info("No GitHub repository and token configured, skipping continuous integration for %s", name)

        await self.warm_up(name)

    async def deploy_via_web_deploy(self, name: str) -> None:
        site = await self.create_site(name)
        self.log.info("Deploying to %s through web deploy...", name)
        await self.client.deploy_via_package_uri(self.group, site, self.settings.web_deploy_package_uri)

        await self.warm_up(name, SQUARE_FUNCTION_PATH, WEB_DEPLOY_SQUARE_INPUT)

    async def warm_up(self, site_name: str, path: str = "", body: str | None = None) -> str | Exception:
        url = get_site_url(site_name, path)
        self.log.info("Warming up %s...", url)
        if self.settings.warmup_poll_timeout is not None:
            result = await poll_until_ready(self.http, url, self.settings.warmup_poll_timeout, body)
        else:
            result = await warm_up(self.http, url, self.settings.warmup_delay, body)
        if not isinstance(result, Exception):
            if body is None:
                self.log.info("Response from %s: %s", url, result)
            else:
                self.log.info("Square of %s is %s", body, result)
        self.responses[site_name] = result
        return result

    async def cleanup(self) -> Exception | None:
        """Delete the resource group, never raises. Returns what went wrong, if anything"""
        try:
            self.log.info("Deleting Resource Group: %s", self.resource_group_name)
            await self.client.delete_resource_group(self.resource_group)
        except CleanupSkipped as e:
            self.log.info(NO_CLEANUP_MESSAGE)
            return e
        except Exception as e:
            self.log.exception("Failed to delete resource group %s", self.resource_group_name)
            return e
        self.log.info("Deleted Resource Group: %s", self.resource_group_name)
        return None


def configure_logging() -> str:
    level = environ.get(LOG_LEVEL_SETTING, "INFO").upper()
    if level not in {"ERROR", "WARN", "WARNING", "INFO", "DEBUG"}:
        level = "INFO"
    basicConfig()
    getLogger("provisioning").setLevel(level)
    return level


async def main() -> RunResult:
    """Entry point, logs every failure instead of raising"""
    level = configure_logging()
    log.info("Started provisioning at %s (log level %s)", now(), level)
    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        log.error("Invalid configuration: %s", e)
        return RunResult(e, None, {})

    try:
        async with ClientSecretCredential(settings.tenant_id, settings.client_id, settings.client_secret) as credential:
            log.info("Selected subscription: %s", settings.subscription_id)
            async with ProvisioningWorkflow(settings, credential) as workflow:
                result = await workflow.run()
    except Exception as e:
        log.exception("Provisioning failed")
        return RunResult(e, None, {})

    log.info("Provisioning finished at %s (%s)", now(), "succeeded" if result.succeeded else "failed")
    return result
