# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from asyncio import gather
from collections.abc import Mapping
from contextlib import AbstractAsyncContextManager
from logging import getLogger
from types import MappingProxyType, TracebackType
from typing import NamedTuple, Self

# 3p
from azure.core.credentials_async import AsyncTokenCredential
from azure.mgmt.resource.resources.aio import ResourceManagementClient
from azure.mgmt.resource.resources.models import ResourceGroup
from azure.mgmt.storage.aio import StorageManagementClient
from azure.mgmt.storage.models import PublicNetworkAccess, Sku, StorageAccountCreateParameters, StorageAccountKey
from azure.mgmt.web.aio import WebSiteManagementClient
from azure.mgmt.web.models import (
    AppServicePlan,
    CsmPublishingCredentialsPoliciesEntity,
    CsmPublishingProfileOptions,
    MSDeploy,
    MSDeployStatus,
    NameValuePair,
    Site,
    SiteConfig,
    SiteSourceControl,
    SkuDescription,
    SourceControl,
)

# project
from provisioning.client.publishing_profile import (
    InvalidPublishingProfileError,
    PublishingProfile,
    PublishingProfileFormat,
    parse_publishing_profile,
)
from provisioning.common import is_in_resource_group
from provisioning.concurrency import collect
from provisioning.deploy_common import wait_for_resource
from provisioning.errors import CleanupSkipped, CloudApiError, cloud_api_errors

FUNCTION_APP_KIND = "functionapp"
LOCAL_GIT_SCM_TYPE = "LocalGit"
GITHUB_SOURCE_CONTROL = "GitHub"

HOSTING_PLAN_SKU = SkuDescription(name="S1", tier="Standard", capacity=1)
STORAGE_ACCOUNT_SKU = "Standard_LRS"

FAILED_MS_DEPLOY_STATES = {"failed", "canceled"}

log = getLogger(__name__)


class SiteSettings(NamedTuple):
    """The site configuration shared by every function app, the storage linkage included"""

    storage_connection_string: str
    functions_extension_version: str = "~4"
    worker_runtime: str = "node"
    node_version: str = "~18"
    scm_type: str | None = None
    extra_app_settings: Mapping[str, str] = MappingProxyType({})

    def app_settings(self) -> dict[str, str]:
        return {
            "AzureWebJobsStorage": self.storage_connection_string,
            "FUNCTIONS_EXTENSION_VERSION": self.functions_extension_version,
            "FUNCTIONS_WORKER_RUNTIME": self.worker_runtime,
            "WEBSITE_NODE_DEFAULT_VERSION": self.node_version,
            **self.extra_app_settings,
        }

    def to_site_config(self) -> SiteConfig:
        return SiteConfig(
            app_settings=[NameValuePair(name=name, value=value) for name, value in self.app_settings().items()],
            scm_type=self.scm_type,
        )


class AppServiceClient(AbstractAsyncContextManager["AppServiceClient"]):
    """Thin wrapper over the management clients, every Azure error comes out as a CloudApiError"""

    def __init__(self, credential: AsyncTokenCredential, subscription_id: str) -> None:
        self.subscription_id = subscription_id
        self.resource_client = ResourceManagementClient(credential, subscription_id)
        self.storage_client = StorageManagementClient(credential, subscription_id)
        self.web_client = WebSiteManagementClient(credential, subscription_id)

    async def __aenter__(self) -> Self:
        await gather(
            self.resource_client.__aenter__(),
            self.storage_client.__aenter__(),
            self.web_client.__aenter__(),
        )
        return self

    async def __aexit__(
        self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: TracebackType | None
    ) -> None:
        await gather(
            self.resource_client.__aexit__(exc_type, exc_val, exc_tb),
            self.storage_client.__aexit__(exc_type, exc_val, exc_tb),
            self.web_client.__aexit__(exc_type, exc_val, exc_tb),
        )

    async def create_resource_group(self, name: str, region: str) -> ResourceGroup:
        log.info("Creating resource group %s in %s", name, region)
        with cloud_api_errors(f"create resource group {name}"):
            return await self.resource_client.resource_groups.create_or_update(name, ResourceGroup(location=region))

    async def delete_resource_group(self, group: ResourceGroup | None) -> None:
        if group is None or not group.name:
            raise CleanupSkipped()
        with cloud_api_errors(f"delete resource group {group.name}"):
            poller = await self.resource_client.resource_groups.begin_delete(group.name)
            await poller.result()

    async def create_storage_account(self, group: ResourceGroup, name: str, region: str) -> str:
        """Creates the storage account backing the function apps, returns its connection string"""
        log.info("Creating storage account %s for region %s", name, region)
        with cloud_api_errors(f"create storage account {name}"):
            poller = await self.storage_client.storage_accounts.begin_create(
                group.name,
                name,
                StorageAccountCreateParameters(
                    sku=Sku(name=STORAGE_ACCOUNT_SKU),
                    kind="StorageV2",
                    location=region,
                    public_network_access=PublicNetworkAccess.ENABLED,
                ),
            )
            await wait_for_resource(
                poller, lambda: self.storage_client.storage_accounts.get_properties(group.name, name)
            )
            return await self.get_connection_string(group.name, name)

    async def get_connection_string(self, resource_group: str, storage_account_name: str) -> str:
        keys_result = await self.storage_client.storage_accounts.list_keys(resource_group, storage_account_name)
        keys: list[StorageAccountKey] = keys_result.keys or []
        if len(keys) == 0:
            raise CloudApiError(f"list keys for storage account {storage_account_name}", "No keys found")
        key: str = keys[0].value  # type: ignore
        return (
            "DefaultEndpointsProtocol=https;AccountName="
            + storage_account_name
            + ";AccountKey="
            + key
            + ";EndpointSuffix=core.windows.net"
        )

    async def create_hosting_plan(self, group: ResourceGroup, name: str, region: str) -> AppServicePlan:
        log.info("Creating app service plan %s in resource group %s", name, group.name)
        with cloud_api_errors(f"create app service plan {name}"):
            poller = await self.web_client.app_service_plans.begin_create_or_update(
                group.name, name, AppServicePlan(location=region, sku=HOSTING_PLAN_SKU)
            )
            return await poller.result()

    async def create_site(
        self, group: ResourceGroup, name: str, region: str, plan: AppServicePlan, config: SiteSettings
    ) -> Site:
        if not plan.id or not is_in_resource_group(plan.id, str(group.name)):
            raise ValueError(f"App service plan {plan.name} does not belong to resource group {group.name}")
        log.info("Creating function app %s on plan %s", name, plan.name)
        with cloud_api_errors(f"create function app {name}"):
            poller = await self.web_client.web_apps.begin_create_or_update(
                group.name,
                name,
                Site(
                    location=region,
                    kind=FUNCTION_APP_KIND,
                    server_farm_id=plan.id,
                    site_config=config.to_site_config(),
                ),
            )
            return await poller.result()

    async def allow_basic_publishing(self, group: ResourceGroup, site: Site) -> None:
        """FTP and SCM basic auth are off by default, publishing profile credentials need them"""
        policy = CsmPublishingCredentialsPoliciesEntity(allow=True)
        with cloud_api_errors(f"enable basic publishing credentials for {site.name}"):
            await self.web_client.web_apps.update_ftp_allowed(group.name, site.name, policy)
            await self.web_client.web_apps.update_scm_allowed(group.name, site.name, policy)

    async def fetch_publishing_profile(
        self, group: ResourceGroup, site: Site, profile_format: PublishingProfileFormat
    ) -> PublishingProfile:
        operation = f"fetch {profile_format} publishing profile for {site.name}"
        with cloud_api_errors(operation):
            stream = await self.web_client.web_apps.list_publishing_profile_xml_with_secrets(
                group.name, site.name, CsmPublishingProfileOptions(format=profile_format)
            )
            xml = b"".join(await collect(stream)).decode()
        try:
            return parse_publishing_profile(xml, profile_format, str(site.name))
        except InvalidPublishingProfileError as e:
            raise CloudApiError(operation, str(e)) from e

    async def sync_function_triggers(self, group: ResourceGroup, site: Site) -> None:
        with cloud_api_errors(f"sync function triggers for {site.name}"):
            await self.web_client.web_apps.sync_function_triggers(group.name, site.name)

    async def link_external_git_source(self, group: ResourceGroup, site: Site, repo_uri: str, branch: str) -> None:
        log.info("Linking %s (%s) to function app %s", repo_uri, branch, site.name)
        await self._link_source_control(group, site, repo_uri, branch, is_manual_integration=True)

    async def link_github_ci(self, group: ResourceGroup, site: Site, repo_uri: str, branch: str, token: str) -> None:
        log.info("Linking %s (%s) to function app %s with continuous integration", repo_uri, branch, site.name)
        with cloud_api_errors("store GitHub source control token"):
            await self.web_client.update_source_control(GITHUB_SOURCE_CONTROL, SourceControl(token=token))
        await self._link_source_control(group, site, repo_uri, branch, is_manual_integration=False)

    async def _link_source_control(
        self, group: ResourceGroup, site: Site, repo_uri: str, branch: str, *, is_manual_integration: bool
    ) -> None:
        with cloud_api_errors(f"link source control for {site.name}"):
            poller = await self.web_client.web_apps.begin_create_or_update_source_control(
                group.name,
                site.name,
                SiteSourceControl(repo_url=repo_uri, branch=branch, is_manual_integration=is_manual_integration),
            )
            await poller.result()

    async def deploy_via_package_uri(self, group: ResourceGroup, site: Site, package_uri: str) -> None:
        operation = f"web deploy {package_uri} to {site.name}"
        log.info("Deploying %s to function app %s through web deploy", package_uri, site.name)
        with cloud_api_errors(operation):
            poller = await self.web_client.web_apps.begin_create_ms_deploy_operation(
                group.name, site.name, MSDeploy(package_uri=package_uri)
            )
            status: MSDeployStatus | None = await poller.result()
        # provisioning_state is a str enum, or a plain str for states the SDK doesn't know
        state = getattr(status.provisioning_state, "value", status.provisioning_state) if status else None
        if state and str(state).lower() in FAILED_MS_DEPLOY_STATES:
            raise CloudApiError(operation, f"deployment finished in state {state}")
