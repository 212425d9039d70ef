"""
Cloudflare Workers context builder.

Region comes from the request's ``cf`` routing metadata. The platform exposes
no function identity, so it is recovered from the worker naming convention
on the serving host. Secrets are the worker's bindings, then the bound
``PACKAGE`` key/value namespace.
"""

from __future__ import annotations

from ..config import Settings, get_settings
from ..context import (
    FunctionInfo,
    InvocationContext,
    InvocationInfo,
    PathInfo,
    RuntimeInfo,
    extract_path_suffix,
    parse_worker_host,
)
from ..logging import create_cloudflare_logger
from ..platform import Platform
from ..secrets import BindingSecretResolver
from ..types import FetchEvent

RAY_HEADER = "cf-ray"
TRANSACTION_HEADER = "x-transaction-id"


def build_context(event: FetchEvent, settings: Settings | None = None) -> InvocationContext:
    """Build the invocation context. Performs no I/O."""
    settings = settings or get_settings()
    request = event.request
    cf = request.cf or {}

    package, name = parse_worker_host(request.host)
    fqn = f"{package}--{name}" if package and name else None

    request_id = request.headers.get(RAY_HEADER)
    transaction_id = request.headers.get(TRANSACTION_HEADER) or request_id

    context = InvocationContext(
        path_info=PathInfo(suffix=extract_path_suffix(request, settings.routing)),
        runtime=RuntimeInfo(name=Platform.CLOUDFLARE.value, region=cf.get("colo")),
        func=FunctionInfo(name=name, package=package, fqn=fqn),
        invocation=InvocationInfo(transaction_id=transaction_id, request_id=request_id),
        env=BindingSecretResolver(event.env, settings.secrets),
    )
    context.log = create_cloudflare_logger(context)
    return context


async def create_context(event: FetchEvent, settings: Settings | None = None) -> InvocationContext:
    return build_context(event, settings)


__all__ = ["build_context", "create_context"]
