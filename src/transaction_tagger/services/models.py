"""
Service layer models - DTOs for service operations.

These models represent the results of service operations, not domain entities.
"""
from dataclasses import dataclass, field
from typing import Dict, List
from transaction_tagger.domain.models import Transaction


@dataclass
class ImportResult:
    """
    Result of importing a record file.

    Reports how many records were parsed and which were new vs duplicates
    (same id as a transaction already in the working set).
    """
    total_parsed: int
    new_transactions: int
    duplicates_skipped: int

    imported: List[Transaction] = field(default_factory=list)
    skipped: List[Transaction] = field(default_factory=list)

    filepath: str = ""

    @property
    def success(self) -> bool:
        """Import is successful if at least one transaction is imported"""
        return self.new_transactions > 0

    @property
    def tag_breakdown(self) -> Dict[str, int]:
        breakdown: Dict[str, int] = {}
        for txn in self.imported:
            tag = txn.tag or "Untagged"
            breakdown[tag] = breakdown.get(tag, 0) + 1
        return breakdown

    def __str__(self) -> str:
        "Human-readable summary"
        return "\n".join([
            "Import summary:",
            f" 📄 File: {self.filepath}",
            f" ✅ New transactions: {self.new_transactions}",
            f" ⏭️ Duplicates Skipped: {self.duplicates_skipped}",
        ])

    def __post_init__(self):
        """Validate counts match lists"""
        if self.new_transactions != len(self.imported):
            raise ValueError(
                f"Count mismatch: new_transactions={self.new_transactions} "
                f"but len(imported)={len(self.imported)}"
            )
        if self.duplicates_skipped != len(self.skipped):
            raise ValueError(
                f"Count mismatch: duplicates_skipped={self.duplicates_skipped} "
                f"but len(skipped)={len(self.skipped)}"
            )


@dataclass
class ReevaluationResult:
    """Outcome of re-classifying the whole working set"""
    total: int
    fixed: int
    unchanged: int

    def __str__(self) -> str:
        return f"Re-evaluated {self.total} transactions: {self.fixed} changed, {self.unchanged} unchanged"


@dataclass
class FixResult:
    """Outcome of fixing tag assignments; changes are recorded in fix_history"""
    total: int
    fixed: int
    trusted: int
    skipped: int = 0

    def __str__(self) -> str:
        return (
            f"Checked {self.total} transactions: {self.fixed} fixed, "
            f"{self.trusted} trusted, {self.skipped} skipped"
        )
