"""paper-launcher data models — Pydantic v2, frozen."""

from paperlauncher.models.artifacts import Artifact, ChecksumSidecar, parse_jar_name
from paperlauncher.models.context import RetryPolicy
from paperlauncher.models.releases import (
    BuildUpdate,
    ReleaseAsset,
    ReleaseDescriptor,
    ResolvedBuild,
)
from paperlauncher.models.update import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    SelfUpdateOutcome,
    StagedUpdate,
    UpdateState,
    UpdateTransition,
)

__all__ = [
    # artifacts
    "Artifact",
    "ChecksumSidecar",
    "parse_jar_name",
    # context
    "RetryPolicy",
    # releases
    "BuildUpdate",
    "ReleaseAsset",
    "ReleaseDescriptor",
    "ResolvedBuild",
    # update
    "TERMINAL_STATES",
    "VALID_TRANSITIONS",
    "SelfUpdateOutcome",
    "StagedUpdate",
    "UpdateState",
    "UpdateTransition",
]
