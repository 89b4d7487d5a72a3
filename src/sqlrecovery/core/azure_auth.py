from __future__ import annotations

import time
from collections.abc import Sequence

from azure.core.credentials_async import AsyncTokenCredential
from azure.identity.aio import AzureCliCredential as AzureCliCredentialAsync
from azure.identity.aio import ChainedTokenCredential as ChainedTokenCredentialAsync
from azure.identity.aio import ClientSecretCredential as ClientSecretCredentialAsync
from azure.identity.aio import DefaultAzureCredential as DefaultAzureCredentialAsync
from azure.identity.aio import EnvironmentCredential as EnvironmentCredentialAsync
from azure.identity.aio import ManagedIdentityCredential as ManagedIdentityCredentialAsync

from sqlrecovery.core.config import AzureConfig
from sqlrecovery.core.exceptions import ConfigurationException
from sqlrecovery.core.logging import get_logger

logger = get_logger(__name__)

_ARM_SCOPE = "https://management.azure.com/.default"

_CLOUD_HOSTS = {
    "public": "https://login.microsoftonline.com",
    "usgov": "https://login.microsoftonline.us",
    "china": "https://login.chinacloudapi.cn",
}


def authority_host(cfg: AzureConfig) -> str:
    if cfg.authority_host:
        return cfg.authority_host.rstrip("/")
    return _CLOUD_HOSTS.get(cfg.cloud, _CLOUD_HOSTS["public"])


def build_async_credential(cfg: AzureConfig) -> AsyncTokenCredential:
    authority = authority_host(cfg)
    start = time.perf_counter()
    logger.debug("build_async_credential.start", auth_mode=cfg.auth_mode, authority=authority)

    credential: AsyncTokenCredential
    if cfg.auth_mode == "service_principal":
        if cfg.tenant_id is None or cfg.client_id is None or cfg.client_secret is None:
            raise ConfigurationException(
                "tenant_id, client_id and client_secret are required for service_principal",
                details={
                    "tenant_id": cfg.tenant_id is not None,
                    "client_id": cfg.client_id is not None,
                    "client_secret": cfg.client_secret is not None,
                },
            )
        credential = ClientSecretCredentialAsync(
            tenant_id=cfg.tenant_id,
            client_id=cfg.client_id,
            client_secret=cfg.client_secret.get_secret_value(),
            authority=authority,
        )
    elif cfg.auth_mode == "environment":
        credential = EnvironmentCredentialAsync(authority=authority)
    elif cfg.auth_mode == "azure_cli":
        credential = AzureCliCredentialAsync()
    elif cfg.auth_mode == "managed_identity":
        credential = ManagedIdentityCredentialAsync(client_id=cfg.user_assigned_identity_client_id)
    else:
        credentials: list[AsyncTokenCredential] = []
        for factory in (
            lambda: EnvironmentCredentialAsync(authority=authority),
            lambda: ManagedIdentityCredentialAsync(),
            lambda: AzureCliCredentialAsync(),
        ):
            try:
                credentials.append(factory())
            except ValueError as e:
                logger.debug("credential unavailable", error=str(e), error_type=type(e).__name__)
        credential = (
            ChainedTokenCredentialAsync(*credentials)
            if credentials
            else DefaultAzureCredentialAsync(authority=authority)
        )

    logger.debug(
        "build_async_credential.end",
        credential_type=type(credential).__name__,
        duration_ms=(time.perf_counter() - start) * 1000.0,
    )
    return credential


def arm_scopes() -> Sequence[str]:
    return [_ARM_SCOPE]
