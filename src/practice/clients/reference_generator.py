"""
Reference Generator

Human-readable references used across the practice:

- Client refs ``{portfolio}{ALPHA}{NNN}`` such as ``3H001`` for "123 Homes"
  in portfolio 3. ALPHA is the first significant letter of the name.
- Person refs ``P001``, ``P002``, ...
- Party suffix letters ``A``..``Z`` (then ``AA``) appended to the client ref.
"""

import re
from typing import Iterable, Optional

CLIENT_REF_PATTERN = re.compile(r"^(\d+)([A-Z])(\d{3})$")
PERSON_REF_PATTERN = re.compile(r"^P(\d{3,})$")

NAME_STOP_WORDS = frozenset({"THE", "A", "AN", "MR", "MRS", "MS", "DR", "MISS"})

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def alpha_from_name(name: Optional[str]) -> str:
    """First A-Z letter of the first token that is not a stop word."""
    if not name:
        return "X"
    upper = str(name).upper().strip()
    for token in re.split(r"[^A-Z0-9]+", upper):
        if not token or token in NAME_STOP_WORDS:
            continue
        match = re.search(r"[A-Z]", token)
        if match:
            return match.group(0)
    fallback = re.search(r"[A-Z]", upper)
    return fallback.group(0) if fallback else "X"


def is_valid_client_ref(ref: Optional[str]) -> bool:
    return bool(ref) and CLIENT_REF_PATTERN.match(ref) is not None


def is_valid_person_ref(ref: Optional[str]) -> bool:
    return bool(ref) and PERSON_REF_PATTERN.match(ref) is not None


def portfolio_from_ref(ref: Optional[str]) -> Optional[int]:
    """Portfolio code encoded at the start of a client ref."""
    if not ref:
        return None
    match = CLIENT_REF_PATTERN.match(ref)
    return int(match.group(1)) if match else None


def generate_client_ref(portfolio_code: int, name: str, existing_refs: Iterable[str]) -> str:
    """
    Next client reference for a portfolio and name.

    The numeric part continues from the highest existing number for the
    same portfolio and letter, so deleted refs are never reused.
    """
    alpha = alpha_from_name(name)
    highest = 0
    for ref in existing_refs:
        match = CLIENT_REF_PATTERN.match(ref or "")
        if not match:
            continue
        if int(match.group(1)) == portfolio_code and match.group(2) == alpha:
            highest = max(highest, int(match.group(3)))
    return f"{portfolio_code}{alpha}{highest + 1:03d}"


def generate_person_ref(existing_refs: Iterable[str]) -> str:
    """Lowest free ``P###`` reference."""
    used = set()
    for ref in existing_refs:
        match = PERSON_REF_PATTERN.match(ref or "")
        if match:
            used.add(int(match.group(1)))
    index = 1
    while index in used:
        index += 1
    return f"P{index:03d}"


def next_suffix_letter(used_letters: Iterable[str]) -> str:
    """First unused letter A-Z for a client's parties, ``AA`` once exhausted."""
    used = {letter for letter in used_letters if letter}
    for letter in ALPHABET:
        if letter not in used:
            return letter
    return "AA"


def party_ref(client_ref: str, suffix_letter: str) -> str:
    return f"{client_ref}{suffix_letter}"
