from __future__ import annotations

import inspect
import time
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from azure.core.credentials_async import AsyncTokenCredential
from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.mgmt.resource.resources.aio import ResourceManagementClient
from azure.mgmt.resource.subscriptions.aio import SubscriptionClient
from azure.mgmt.sql.aio import SqlManagementClient

from sqlrecovery.core.azure_auth import arm_scopes, build_async_credential
from sqlrecovery.core.config import AzureConfig
from sqlrecovery.core.exceptions import (
    AuthenticationException,
    CloudOperationError,
    ConfigurationException,
)
from sqlrecovery.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Clients:
    subscription_id: str
    cred: AsyncTokenCredential
    subs: SubscriptionClient
    res: ResourceManagementClient
    sql: SqlManagementClient

    async def close(self) -> None:
        for attr in ("sql", "res", "subs"):
            try:
                await getattr(self, attr).close()
            except Exception as e:
                logger.debug("error closing client", client=attr, error=str(e))
        try:
            await self.cred.close()
        except Exception as e:
            logger.debug("error closing async credential", error=str(e))


def _http_status(e: BaseException) -> int | None:
    if isinstance(e, HttpResponseError):
        sc = getattr(e, "status_code", None)
        if sc is not None:
            return int(sc)
        resp = getattr(e, "response", None)
        if resp is not None:
            sc = getattr(resp, "status_code", None)
            if sc is not None:
                return int(sc)
    return None


def classify(e: BaseException) -> tuple[bool, str, int | None]:
    if isinstance(e, ClientAuthenticationError):
        return False, "auth_error", _http_status(e)
    if isinstance(e, ServiceRequestError | ServiceResponseError | TimeoutError | OSError):
        return True, "transient_io", _http_status(e)
    if isinstance(e, HttpResponseError):
        sc = _http_status(e)
        if sc in (408, 429) or (sc is not None and 500 <= sc <= 599):
            return True, f"http_{sc}", sc
        return False, f"http_{sc}" if sc is not None else "http_error", sc
    return False, "azure_error", _http_status(e)


@asynccontextmanager
async def translate_errors(operation: str, **fields: Any) -> AsyncIterator[None]:
    try:
        yield
    except AzureError as e:
        retryable, code, sc = classify(e)
        logger.error(
            "azure.operation.error",
            operation=operation,
            error_type=type(e).__name__,
            error_code=code,
            http_status=sc,
            **fields,
        )
        raise CloudOperationError(
            str(getattr(e, "message", None) or e),
            code=code,
            status_code=sc,
            retryable=retryable,
            operation=operation,
            cause=e,
        ) from e


async def run_poller(operation: str, begin: Awaitable[Any], **fields: Any) -> Any:
    """Start a long-running operation and wait for its final result."""
    start = time.perf_counter()
    async with translate_errors(operation, **fields):
        poller = await begin
        result = poller.result()
        if inspect.isawaitable(result):
            result = await result
    logger.debug(
        "azure.operation.done",
        operation=operation,
        duration_ms=(time.perf_counter() - start) * 1000.0,
        **fields,
    )
    return result


async def _default_subscription_id(subs: SubscriptionClient) -> str:
    async with translate_errors("subscriptions.list"):
        async for sub in subs.subscriptions.list():
            if getattr(sub, "state", None) in (None, "Enabled"):
                return str(sub.subscription_id)
    raise ConfigurationException(
        "no subscription_id configured and the credential can see no enabled subscription"
    )


async def build_clients(cfg: AzureConfig) -> Clients:
    cred = build_async_credential(cfg)
    try:
        try:
            await cred.get_token(*arm_scopes())
        except ClientAuthenticationError as e:
            raise AuthenticationException(
                "credential was rejected by the identity service",
                details={"auth_mode": cfg.auth_mode},
                cause=e,
            ) from e
        subs = SubscriptionClient(cred)
        sid = cfg.subscription_id or await _default_subscription_id(subs)
        clients = Clients(
            subscription_id=sid,
            cred=cred,
            subs=subs,
            res=ResourceManagementClient(cred, sid),
            sql=SqlManagementClient(cred, sid),
        )
    except BaseException:
        await cred.close()
        raise
    logger.debug("azure_clients.built", subscription_id=sid)
    return clients
