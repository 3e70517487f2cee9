"""Reduce restart results into workspace-level counts."""

from __future__ import annotations

from typing import TYPE_CHECKING

from devharbor.sandbox_runtime.models.restart import RestartSummary

if TYPE_CHECKING:
    from collections.abc import Sequence

    from devharbor.sandbox_runtime.models.restart import RepositoryRestartResult


def summarize(results: Sequence[RepositoryRestartResult]) -> RestartSummary:
    """Count repositories and service outcomes.  Empty input -> all zeros."""
    total = 0
    successful = 0
    for result in results:
        total += len(result.services)
        successful += sum(1 for service in result.services.values() if service.succeeded)
    return RestartSummary(
        repositories=len(results),
        total_services=total,
        successful=successful,
        failed=total - successful,
    )
