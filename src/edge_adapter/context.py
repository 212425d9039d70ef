"""
Invocation context handed to user handlers.

The context is created once per request. ``runtime``, ``func`` and
``invocation`` are frozen at construction; ``attributes`` is the only field
user code is expected to change while handling (for instance
``attributes["loggers"]`` to pick log targets).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from yarl import URL

from .config import RoutingConfig, get_settings

if TYPE_CHECKING:
    from .logging import ContextLogger
    from .secrets import SecretResolver
    from .types import Request


@dataclass(frozen=True)
class PathInfo:
    suffix: str = ""


@dataclass(frozen=True)
class RuntimeInfo:
    name: str
    region: str | None = None


@dataclass(frozen=True)
class FunctionInfo:
    """Identity of the deployed function; fields the runtime cannot supply are ``None``."""

    name: str | None = None
    package: str | None = None
    version: str | None = None
    fqn: str | None = None
    app: str | None = None


@dataclass(frozen=True)
class InvocationInfo:
    """Correlation identifiers for one invocation."""

    id: str | None = None
    deadline: float | None = None
    transaction_id: str | None = None
    request_id: str | None = None


_FROZEN_FIELDS = frozenset({"path_info", "runtime", "func", "invocation", "env"})


@dataclass
class InvocationContext:
    """
    Everything a handler learns about its invocation.

    Attributes:
        path_info: Path below the function's mount point
        runtime: Runtime name and region
        func: Deployed function identity
        invocation: Correlation identifiers
        env: Asynchronous secret lookup (``await context.env.get(key)``)
        log: Structured logger bound to this context
        attributes: Mutable per-request bag, re-read by ``log`` on every call
        storage: Reserved, ``None``
        resolver: Reserved, ``None``
    """

    path_info: PathInfo
    runtime: RuntimeInfo
    func: FunctionInfo
    invocation: InvocationInfo
    env: SecretResolver
    log: ContextLogger = field(default=None, repr=False)  # type: ignore[assignment]
    attributes: dict[str, Any] = field(default_factory=dict)
    storage: Any = None
    resolver: Any = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _FROZEN_FIELDS and name in self.__dict__:
            raise AttributeError(f"InvocationContext.{name} cannot be reassigned")
        if name == "log" and self.__dict__.get("log") is not None:
            raise AttributeError("InvocationContext.log cannot be reassigned")
        super().__setattr__(name, value)

    def to_dict(self) -> dict[str, Any]:
        """Metadata view, without the resolver and logger."""
        return {
            "path_info": asdict(self.path_info),
            "runtime": asdict(self.runtime),
            "func": asdict(self.func),
            "invocation": asdict(self.invocation),
            "attributes": dict(self.attributes),
        }


# =============================================================================
# Helpers shared by the builders
# =============================================================================


def extract_path_suffix(request: Request, routing: RoutingConfig | None = None) -> str:
    """
    Return the request path below the function's mount point.

    The first ``routing.mount_segments`` path segments form the mount point.
    """
    routing = routing or get_settings().routing
    path = URL(request.url).path or "/"
    if routing.mount_segments == 0:
        return path
    segments = path.split("/")[1:]
    rest = segments[routing.mount_segments:]
    return "/" + "/".join(rest) if rest else ""


def parse_worker_host(host: str | None) -> tuple[str | None, str | None]:
    """
    Split a worker hostname into ``(package, name)``.

    Workers are deployed as ``{package}--{name}.<account>.workers.dev``; any
    other host yields ``(None, None)``.
    """
    if not host:
        return None, None
    label = host.split(".", 1)[0]
    package, sep, name = label.partition("--")
    if not sep or not package or not name:
        return None, None
    return package, name


__all__ = [
    "PathInfo",
    "RuntimeInfo",
    "FunctionInfo",
    "InvocationInfo",
    "InvocationContext",
    "extract_path_suffix",
    "parse_worker_host",
]
