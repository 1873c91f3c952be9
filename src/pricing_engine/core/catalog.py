"""
Coverage catalog lookups used by import and deduplication.
"""

from collections.abc import Iterable

from .models import Coverage, FactorStep


class CoverageCatalog:
    """
    Resolves coverage display names to stable coverage codes.

    Lookups accept either a coverage name or an already-resolved code,
    so documents written with codes import as cleanly as those written
    with names.
    """

    def __init__(self, coverages: Iterable[Coverage] = ()) -> None:
        self._coverages: list[Coverage] = list(coverages)
        self._by_name: dict[str, Coverage] = {}
        self._by_code: dict[str, Coverage] = {}
        for coverage in self._coverages:
            self._by_name.setdefault(coverage.name, coverage)
            self._by_code.setdefault(coverage.coverage_code, coverage)

    def __len__(self) -> int:
        return len(self._coverages)

    def __iter__(self):
        return iter(self._coverages)

    @property
    def names(self) -> list[str]:
        return [c.name for c in self._coverages]

    def lookup(self, name_or_code: str) -> Coverage | None:
        """Find a coverage by exact name, falling back to exact code."""
        return self._by_name.get(name_or_code) or self._by_code.get(name_or_code)

    def resolve_code(self, name_or_code: str) -> str | None:
        coverage = self.lookup(name_or_code)
        return coverage.coverage_code if coverage else None

    def unresolved(self, names: Iterable[str]) -> list[str]:
        """Names with no matching coverage, in first-seen order."""
        missing: list[str] = []
        for name in names:
            if self.lookup(name) is None and name not in missing:
                missing.append(name)
        return missing

    def dedup_key(self, step: FactorStep) -> tuple[str, str]:
        """
        Identity of a factor step for import deduplication.

        The semicolon-joined coverage codes plus the step name. Coverages
        the catalog does not know keep their stored text.
        """
        codes = [self.resolve_code(name) or name for name in step.coverages]
        return ";".join(codes), step.step_name
