"""
Request dispatch.

``dispatch(event, handler)`` is the single entry point each runtime calls per
inbound request: it classifies the runtime, builds the invocation context
with that runtime's builder and runs the user handler. It is also the only
place handler failures are caught.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Union

from .adapters import cloudflare, fastly
from .concurrency import maybe_await
from .context import InvocationContext
from .errors import ErrorContext, HandlerError, PlatformError, PlatformNotDetectedError, error_response
from .platform import Platform, detect
from .types import FetchEvent, Request, Response

logger = logging.getLogger(__name__)

Handler = Callable[[Request, InvocationContext], Union[Response, Awaitable[Response]]]


async def build_context(event: FetchEvent, platform: Platform) -> InvocationContext:
    if platform is Platform.CLOUDFLARE:
        return await cloudflare.create_context(event)
    elif platform is Platform.FASTLY:
        return await fastly.create_context(event)
    raise PlatformNotDetectedError(f"No context builder for platform: {platform!r}")


async def dispatch(event: FetchEvent, handler: Handler) -> Response:
    """
    Run ``handler`` for one inbound event.

    A native runtime request on ``event.request`` is adapted with
    ``Request.from_native`` before detection.

    Returns:
        The handler's response; a 500 ``Unknown platform`` response when no
        runtime could be detected; a 500 ``Error: <message>`` response when
        request adaptation, detection, context construction, the handler or
        result coercion raised.
    """
    try:
        event = FetchEvent(Request.from_native(event.request), event.env)
        platform = await detect(event)
    except Exception as e:
        error = PlatformError(f"Platform detection failed: {e}", context=ErrorContext(operation="detect"), cause=e)
        logger.exception(error.message, extra={"error": error.to_dict()})
        return error_response(error)
    if platform is None:
        return error_response(PlatformNotDetectedError())

    context: InvocationContext | None = None
    try:
        context = await build_context(event, platform)
        response = await maybe_await(handler(event.request, context))
        if not isinstance(response, Response):
            logger.warning(f"Handler returned {type(response).__name__}, not a Response")
            response = _coerce_response(response)
    except Exception as e:
        error = HandlerError.wrap(
            e,
            context=ErrorContext(
                request_id=context.invocation.request_id if context else None,
                transaction_id=context.invocation.transaction_id if context else None,
                platform=platform.value,
                operation="dispatch",
            ),
        )
        logger.exception(f"Handler failed: {error.message}", extra={"error": error.to_dict()})
        response = error_response(error)
    finally:
        if context is not None and context.log is not None:
            await context.log.flush()
    return response


def _coerce_response(value: Any) -> Response:
    if value is None:
        return Response(status=204)
    if isinstance(value, (str, bytes)):
        return Response(value)
    return Response.json_response(value)


def create_entrypoint(handler: Handler) -> Callable[..., Awaitable[Response]]:
    """
    Wrap a handler into a runtime entry point.

    Example:
        ```python
        async def main(request, context):
            return Response(f"Hello from {context.runtime.name}")

        on_fetch = create_entrypoint(main)
        ```
    """

    async def on_fetch(request: Request | FetchEvent, env: Any = None) -> Response:
        event = request if isinstance(request, FetchEvent) else FetchEvent(request, env)
        return await dispatch(event, handler)

    on_fetch.__name__ = getattr(handler, "__name__", "on_fetch")
    on_fetch.__doc__ = handler.__doc__
    return on_fetch


__all__ = ["Handler", "build_context", "dispatch", "create_entrypoint"]
