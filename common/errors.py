"""Error taxonomy for stress runs and result collection."""

from __future__ import annotations

from typing import Optional

from common.models.execution import FailureCause


class FleetStressError(Exception):
    """Base class for all framework errors."""


class ProviderError(FleetStressError):
    """Target list could not be read or is empty."""


class RunAbortedError(FleetStressError):
    """Operator declined the run at the confirmation gate."""


class RemoteExecutionError(FleetStressError):
    """Per-target infrastructure fault. Never fatal to the fleet."""

    cause: FailureCause = FailureCause.SAMPLING_FAILED

    def __init__(self, message: str, cause: Optional[FailureCause] = None):
        super().__init__(message)
        if cause is not None:
            self.cause = cause


class RemoteUnreachableError(RemoteExecutionError):
    cause = FailureCause.REMOTE_UNREACHABLE


class DirectoryCreationError(RemoteExecutionError):
    cause = FailureCause.DIRECTORY_CREATION_FAILED


class GeneratorLaunchError(RemoteExecutionError):
    cause = FailureCause.GENERATOR_LAUNCH_FAILED


class SamplingError(RemoteExecutionError):
    cause = FailureCause.SAMPLING_FAILED


class ParseError(FleetStressError):
    """A metric could not be extracted. Recorded as a null metric."""


class ArtifactMissingError(FleetStressError):
    """No result directory was found on a target."""
