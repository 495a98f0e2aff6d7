"""Determine directory membership and gate renames on domain reachability."""

from __future__ import annotations

from ..collectors.windows import directory as directory_queries
from ..errors import DirectoryQueryError, DirectoryUnreachableError
from ..models.schema import CloudJoin, DirectoryState, OnPremisesJoin, Workgroup


class DomainJoinDetector:
    """Reads membership fresh on every call; nothing is cached between runs.

    ``queries`` provides ``get_domain_membership``, ``get_cloud_join_entries``
    and ``probe_directory_root``; it defaults to the Windows implementations.
    """

    def __init__(self, queries=None) -> None:
        self.queries = queries or directory_queries

    def detect(self) -> DirectoryState:
        """Return Workgroup, OnPremisesJoin or CloudJoin.

        Raises:
            DirectoryQueryError: any membership query failed. The state is
                never guessed.
        """
        try:
            membership = self.queries.get_domain_membership()
        except Exception as exc:
            raise DirectoryQueryError(f"domain membership query failed: {exc}") from exc

        if membership.get("part_of_domain"):
            domain = membership.get("domain")
            if not domain:
                raise DirectoryQueryError("device reports domain membership but no domain name")
            return OnPremisesJoin(domain_name=domain)

        try:
            entries = self.queries.get_cloud_join_entries()
        except Exception as exc:
            raise DirectoryQueryError(f"cloud-join registration query failed: {exc}") from exc

        for entry in entries:
            tenant_id = (entry.get("tenant_id") or "").strip()
            if tenant_id:
                return CloudJoin(tenant_id=tenant_id)
        return Workgroup()

    def confirm_reachable(self, state: DirectoryState) -> bool:
        """Return True when a rename is safe with respect to *state*.

        Only on-premises membership needs the probe; the other states are
        always reachable for this purpose.
        """
        if not isinstance(state, OnPremisesJoin):
            return True
        try:
            self.queries.probe_directory_root()
        except Exception as exc:
            print(f"  [directory] Probe of {state.domain_name} failed: {exc}", flush=True)
            return False
        return True

    def require_reachable(self, state: DirectoryState) -> None:
        if not self.confirm_reachable(state):
            raise DirectoryUnreachableError(
                f"domain {state.domain_name} is unreachable; rename deferred to a later run"
            )
