"""Fatal error types raised during a deployment run."""

from __future__ import annotations


class DeployError(Exception):
    """Base class for conditions that abort the whole run."""

    category = "deploy"

    def __str__(self) -> str:
        return f"{self.category}: {super().__str__()}"


class MissingCapabilityError(DeployError):
    """A required external capability is unavailable (docker, entropy, files)."""

    category = "environment"


class MissingTemplateError(MissingCapabilityError):
    """The gateway template could not be found."""


class ConfigurationError(DeployError):
    """An operator-supplied setting is malformed."""

    category = "configuration"


class DownloadError(DeployError):
    """A required bootstrap asset could not be fetched."""

    category = "download"


class ServiceStartError(DeployError):
    """docker compose up exited with an error."""

    category = "service-start"


class ReadinessTimeoutError(DeployError):
    """A service did not become ready within its attempt budget."""

    category = "readiness-timeout"

    def __init__(self, service: str, budget: int, message: str | None = None) -> None:
        self.service = service
        self.budget = budget
        super().__init__(message or f"{service} did not become ready within {budget}s")


class ReconciliationError(DeployError):
    """A database reconciliation statement failed."""

    category = "reconciliation"
