"""Raw directory-membership queries.

Unlike the hardware collectors these raise on failure: directory state gates
whether a rename is safe, so a failed query must never be read as "not joined".
"""

from __future__ import annotations

from . import _utils

CLOUD_JOIN_KEY = "HKLM:\\SYSTEM\\CurrentControlSet\\Control\\CloudDomainJoin\\JoinInfo"


def get_domain_membership() -> dict:
    """Return ``{"part_of_domain": bool, "domain": str | None}``.

    Raises RuntimeError if the query fails or returns no membership flag.
    """
    ps = _utils.run_powershell(
        "Get-CimInstance Win32_ComputerSystem "
        "| Select-Object PartOfDomain,Domain "
        "| ConvertTo-Json"
    )
    data = _utils.loads_obj(ps)
    if "PartOfDomain" not in data:
        raise RuntimeError("Win32_ComputerSystem returned no PartOfDomain flag")
    return {
        "part_of_domain": bool(data.get("PartOfDomain")),
        "domain":         (data.get("Domain") or "").strip() or None,
    }


def get_cloud_join_entries() -> list[dict]:
    """Enumerate the cloud-join registration store.

    Returns one ``{"id": ..., "tenant_id": ...}`` dict per registered entry;
    an empty list when the store does not exist.
    """
    key = _utils.ps_quote(CLOUD_JOIN_KEY)
    ps = _utils.run_powershell(
        f"if (Test-Path -LiteralPath {key}) {{ "
        f"Get-ChildItem -LiteralPath {key} "
        "| ForEach-Object { Get-ItemProperty -LiteralPath $_.PSPath } "
        "| Select-Object PSChildName,TenantId "
        "| ConvertTo-Json }"
    )
    return [
        {
            "id":        entry.get("PSChildName"),
            "tenant_id": str(entry.get("TenantId") or "").strip(),
        }
        for entry in _utils.loads_array(ps)
        if isinstance(entry, dict)
    ]


def probe_directory_root() -> None:
    """Bind to the domain's RootDSE; raise RuntimeError when it is unreachable."""
    _utils.run_powershell(
        "$root = [ADSI]'LDAP://RootDSE'; "
        "if (-not $root.defaultNamingContext) { "
        "throw 'Directory root lookup returned no naming context' }"
    )
