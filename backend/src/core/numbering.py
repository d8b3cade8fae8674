"""Numérotation des documents: <PRÉFIXE>-<CODE CLIENT>-<séquence sur 3 chiffres>."""

import re
from typing import Iterable

QUOTE_PREFIX = "D"
INVOICE_PREFIX = "F"

SEQUENCE_PATTERN = re.compile(r"-(\d+)$")

def number_prefix(kind: str, client_code: str) -> str:
    return f"{kind}-{client_code}-"

def format_document_number(kind: str, client_code: str, sequence: int) -> str:
    return f"{number_prefix(kind, client_code)}{sequence:03d}"

def next_sequence(numbers: Iterable[str]) -> int:
    """Séquence suivant la plus haute trouvée (comparaison numérique, pas lexicographique)."""
    sequences = [int(match.group(1)) for match in map(SEQUENCE_PATTERN.search, numbers) if match]
    return max(sequences, default=0) + 1
