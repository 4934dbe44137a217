from enum import Enum

class TransactionType(Enum):
    """Represents whether money is coming in or out"""
    DEBIT = "Debit" # out
    CREDIT = "Credit" # in

    @classmethod
    def parse(cls, value) -> "TransactionType | None":
        """Lenient lookup used for loosely formatted source data ('debit', 'CREDIT', ...)"""
        if value is None or isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return None


class PatternType(Enum):
    """Kinds of textual evidence extracted from a manual assignment"""
    EXACT_WORD = "exact_word"
    EXACT_PHRASE = "exact_phrase"
    SPECIAL_PATTERN = "special_pattern"


class ConditionType(Enum):
    """What a learned rule condition is evaluated against"""
    PATTERN = "pattern"
    CATEGORY = "category"
    SUBCATEGORY = "subcategory"
    COUNTERPARTY = "counterparty"
