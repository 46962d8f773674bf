"""
Player name canonicalization.

Admins type scorer names after the final whistle while users type their
guesses days earlier, so the same player shows up under several spellings.
Known alternates are mapped onto one reference spelling before any
comparison or counting happens.
"""

# Keys are trimmed and case-folded alternate spellings
PLAYER_ALIASES = {
    "vinicius goes": "Vina",
    "vinícius góes": "Vina",
    "vinicius góes": "Vina",
    "vinicius": "Vina",
    "vinícius": "Vina",
    "ph": "Pedro Henrique",
    "vinicius zanocelo": "Zanocello",
    "vinicius zanocello": "Zanocello",
    "vinícius zanocelo": "Zanocello",
    "vinícius zanocello": "Zanocello",
    "zanocelo": "Zanocello",
}


def canonicalize_player_name(name):
    """
    Return the canonical spelling for a known alias.

    Unknown names come back exactly as given (original casing, untrimmed).
    """
    return PLAYER_ALIASES.get(name.strip().casefold(), name)


def normalize_player_name(name):
    """
    Normal form used for matching and for frequency counting.

    Both the predicted name and every actual scorer/assist name go through
    this, so an alias and its canonical spelling always compare equal and
    share one uniqueness count. Blank names normalize to ``None``.
    """
    if not name or not name.strip():
        return None
    return canonicalize_player_name(name).strip().casefold()
