"""Canonical tag names."""

INCOME = "Income"
SAVINGS = "Savings"
INVESTMENTS = "Investments"
TRANSFERS = "Transfers"
OTHER = "Other"

STANDARD_TAGS = [INCOME, SAVINGS, INVESTMENTS, TRANSFERS, OTHER]

# Tags that are treated as "no tag" when re-validating imported data
UNSET_TAGS = {"", "other", "untagged"}

DEFAULT_CATEGORY = "Other"
DEFAULT_SUBCATEGORY = "other"
DEFAULT_CONFIDENCE = 0.5
NO_INDICATORS_REASON = "No specific indicators detected - classified as Other"


def canonical_tag(tag: str) -> str:
    """Map 'savings', 'SAVINGS' etc. onto the standard spelling; unknown tags are capitalized."""
    stripped = tag.strip()
    for standard in STANDARD_TAGS:
        if standard.lower() == stripped.lower():
            return standard
    return stripped[:1].upper() + stripped[1:]
