"""ClusterAPI contract the orchestrator depends on.

The core never talks to a cluster client library directly; every adapter
implements this narrow interface and maps its own failures onto
:class:`TransientError`, :class:`RejectedError` and :class:`NotFoundError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from kubedeploy.models.results import ApplyOutcome


@dataclass(frozen=True)
class ResourceStatus:
    """Desired versus observed instance count of a live object."""

    desired: int
    observed: int

    @property
    def converged(self) -> bool:
        return self.observed == self.desired


class ClusterAPI(ABC):
    """Abstract cluster control-plane client."""

    @abstractmethod
    async def apply_resource(
        self,
        kind: str,
        namespace: str,
        name: str,
        body: Mapping[str, Any],
    ) -> ApplyOutcome:
        """Create or update the object declaratively.

        Fields absent from *body* are left untouched on the live object.

        Raises:
            TransientError: network, timeout or throttling failure.
            RejectedError:  the cluster refused the object.
        """

    @abstractmethod
    async def get_resource_status(self, kind: str, namespace: str, name: str) -> ResourceStatus:
        """Return desired and observed counts for the live object.

        Raises:
            NotFoundError:  the object does not exist (yet).
            TransientError: network, timeout or throttling failure.
        """

    async def close(self) -> None:  # noqa: B027
        """Release connections held by the client."""
