import re
from typing import List

from transaction_tagger.domain.enums import PatternType
from transaction_tagger.domain.learning import Pattern

WORD_CONFIDENCE = 0.7
PHRASE_CONFIDENCE = 0.8
SPECIAL_CONFIDENCE = 0.95

MIN_WORD_LENGTH = 3
MIN_PHRASE_LENGTH = 5

# Counterparty references worth learning verbatim
SPECIAL_PATTERNS = [
    re.compile(r"revolut\*\*\d+\*", re.IGNORECASE),
    re.compile(r"bunq", re.IGNORECASE),
    re.compile(r"degiro", re.IGNORECASE),
    re.compile(r"trading212", re.IGNORECASE),
    re.compile(r"etoro", re.IGNORECASE),
    re.compile(r"coinbase", re.IGNORECASE),
    re.compile(r"binance", re.IGNORECASE),
    re.compile(r"kraken", re.IGNORECASE),
]


def extract_patterns(description: str) -> List[Pattern]:
    """
    Extract learnable evidence from a transaction description.

    Produces:
    - every word of at least 3 characters (exact_word)
    - every pair of adjacent words of at least 5 characters (exact_phrase)
    - matches of known counterparty references (special_pattern)

    Duplicates are dropped so a word repeated in one description only
    counts once towards its frequency.

    Example:
        >>> [p.pattern for p in extract_patterns("Albert Heijn 1234")]
        ['albert', 'heijn', '1234', 'albert heijn', 'heijn 1234']
    """
    patterns: List[Pattern] = []
    seen = set()

    def add(pattern: Pattern) -> None:
        if pattern.key not in seen:
            seen.add(pattern.key)
            patterns.append(pattern)

    words = (description or "").lower().split()

    for word in words:
        if len(word) >= MIN_WORD_LENGTH:
            add(Pattern(PatternType.EXACT_WORD, word, WORD_CONFIDENCE))

    for first, second in zip(words, words[1:]):
        phrase = f"{first} {second}"
        if len(phrase) >= MIN_PHRASE_LENGTH:
            add(Pattern(PatternType.EXACT_PHRASE, phrase, PHRASE_CONFIDENCE))

    for regex in SPECIAL_PATTERNS:
        match = regex.search(description or "")
        if match:
            # Stored as a regex, so literal text must be escaped
            add(Pattern(PatternType.SPECIAL_PATTERN, re.escape(match.group(0).lower()), SPECIAL_CONFIDENCE))

    return patterns
