"""Base classes for all collectors."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class CollectorResult:
    data: dict = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


class BaseCollector(ABC):
    name: str = "base"

    def __init__(self) -> None:
        self._errors: list[str] = []

    @abstractmethod
    def _collect(self) -> dict:
        """Implement in subclass to return collected data."""
        ...

    def collect(self) -> CollectorResult:
        """Wrap _collect in try/except; never raises.

        Sub-queries that fail on their own record the failure with
        ``_note`` and let the collector return partial data.
        """
        self._errors = []
        try:
            data = self._collect()
        except Exception as exc:  # noqa: BLE001
            return CollectorResult(errors=self._errors + [f"{self.name}: {exc}"])
        return CollectorResult(data=data, errors=list(self._errors))

    def _note(self, what: str, exc: Exception) -> None:
        self._errors.append(f"{self.name}.{what}: {exc}")
