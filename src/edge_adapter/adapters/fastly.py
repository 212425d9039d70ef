"""
Fastly Compute context builder.

Function identity, version, region and trace id come from the runtime's
``env()`` accessor. Secrets resolve through the action and package secret
stores.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from ..capabilities import get_fastly_env
from ..config import Settings, get_settings
from ..context import (
    FunctionInfo,
    InvocationContext,
    InvocationInfo,
    PathInfo,
    RuntimeInfo,
    extract_path_suffix,
)
from ..logging import create_fastly_logger
from ..platform import Platform
from ..secrets import TieredSecretResolver
from ..types import FetchEvent, Request

logger = logging.getLogger(__name__)

TRANSACTION_HEADER = "x-transaction-id"

EnvAccessor = Callable[[str], "str | None"]


@dataclass(frozen=True)
class EnvInfo:
    function_fqn: str
    function_name: str | None
    region: str | None
    request_id: str | None
    service_version: str | None
    tx_id: str | None


def get_env_info(request: Request, env: EnvAccessor) -> EnvInfo:
    """Read the invocation metadata from the runtime's environment accessor."""
    service_version = env("FASTLY_SERVICE_VERSION")
    request_id = env("FASTLY_TRACE_ID")
    region = env("FASTLY_POP")
    function_name = env("FASTLY_SERVICE_ID")
    function_fqn = f"{env('FASTLY_CUSTOMER_ID')}-{function_name}-{service_version}"
    tx_id = request.headers.get(TRANSACTION_HEADER) or request_id

    logger.debug(
        f"Env info sv: {service_version} reqId: {request_id} region: {region} "
        f"functionName: {function_name} functionFQN: {function_fqn} txId: {tx_id}"
    )

    return EnvInfo(
        function_fqn=function_fqn,
        function_name=function_name,
        region=region,
        request_id=request_id,
        service_version=service_version,
        tx_id=tx_id,
    )


def build_context(event: FetchEvent, env: EnvAccessor, settings: Settings | None = None) -> InvocationContext:
    """Build the invocation context from an already loaded env accessor. Performs no I/O."""
    settings = settings or get_settings()
    request = event.request
    info = get_env_info(request, env)

    context = InvocationContext(
        path_info=PathInfo(suffix=extract_path_suffix(request, settings.routing)),
        runtime=RuntimeInfo(name=Platform.FASTLY.value, region=info.region),
        func=FunctionInfo(
            name=info.function_name,
            version=info.service_version,
            fqn=info.function_fqn,
        ),
        invocation=InvocationInfo(transaction_id=info.tx_id, request_id=info.request_id),
        env=TieredSecretResolver(settings.secrets),
    )
    context.log = create_fastly_logger(context)
    return context


async def create_context(event: FetchEvent, settings: Settings | None = None) -> InvocationContext:
    """Resolve the env module (cached since detection) and build the context."""
    module = await get_fastly_env()
    return build_context(event, module.env, settings)


__all__ = ["EnvInfo", "get_env_info", "build_context", "create_context"]
