"""
Provider base interfaces and the uniform result type.

Every operation that crosses a process boundary (CMS reads, SerpAPI calls,
CMS writes) returns a ``Result``: either ``Success(value)`` or
``Failure(kind, detail)``. Callers branch on the result instead of relying
on exceptions whose meaning differs per call site.
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Generic, TypeVar, Union
from dataclasses import asdict, dataclass
from enum import Enum
import time
import logging


T = TypeVar('T')


class FailureKind(Enum):
    """Why a boundary-crossing operation did not produce a value."""
    UNAVAILABLE = "content_unavailable"
    NOT_FOUND = "not_found"
    INVALID_RESPONSE = "invalid_response"
    NOT_CONFIGURED = "not_configured"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful outcome carrying a value."""
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """Failed outcome with a kind and a non-sensitive diagnostic."""
    kind: FailureKind
    detail: str = ""
    status: Optional[int] = None

    @property
    def ok(self) -> bool:
        return False


Result = Union[Success[T], Failure]


def unwrap_or(result: "Result[T]", default: T) -> T:
    """Return the success value or ``default`` for any failure."""
    if isinstance(result, Success):
        return result.value
    return default


class ProviderStatus(Enum):
    """Provider health status."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Result of a provider health check."""
    status: ProviderStatus
    latency_ms: float
    message: str
    details: Optional[Dict[str, Any]] = None

    @property
    def is_healthy(self) -> bool:
        """Check if provider is healthy."""
        return self.status == ProviderStatus.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'latency_ms': round(self.latency_ms, 1),
            'message': self.message,
            'details': self.details or {},
        }


@dataclass
class ProviderMetadata:
    """Metadata about a provider."""
    name: str
    version: str
    description: str
    capabilities: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Provider(ABC):
    """Base provider interface."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    async def get_metadata(self) -> ProviderMetadata:
        """Get provider metadata."""

    @abstractmethod
    async def ping(self) -> Result:
        """Issue the cheapest possible request against the upstream."""

    async def health_check(self) -> HealthCheckResult:
        """Check provider health by pinging the upstream.

        Returns:
            Health check result
        """
        start_time = time.time()
        result = await self.ping()
        latency_ms = (time.time() - start_time) * 1000
        if isinstance(result, Success):
            return HealthCheckResult(
                status=ProviderStatus.HEALTHY,
                latency_ms=latency_ms,
                message=f"Provider {self.__class__.__name__} is healthy",
            )
        if result.kind == FailureKind.NOT_CONFIGURED:
            status = ProviderStatus.UNKNOWN
        else:
            status = ProviderStatus.UNHEALTHY
        return HealthCheckResult(
            status=status,
            latency_ms=latency_ms,
            message=f"Provider health check failed: {result.detail}",
            details={"kind": result.kind.value, "status": result.status},
        )


class ContentProvider(Provider):
    """Content provider interface.

    Providers that read tours, taxonomy terms and posts from a content source.
    """

    @abstractmethod
    async def get_tours(self, locale: str, page: int = 1, per_page: int = 12, **filters) -> Result:
        """Get one page of tours for a locale."""

    @abstractmethod
    async def get_tour_by_slug(self, slug: str, locale: str) -> Result:
        """Get a single tour, or ``Success(None)`` if the slug is unknown."""


class ProviderError(Exception):
    """Raised for provider misconfiguration detected at call time."""

    def __init__(self, message: str, provider_name: Optional[str] = None, details: Optional[Dict] = None):
        """Initialize provider error.

        Args:
            message: Error message
            provider_name: Name of the provider that failed
            details: Additional error details
        """
        super().__init__(message)
        self.provider_name = provider_name
        self.details = details or {}
