"""
Short public identifiers for pastes.

A short id is the paste's numeric id written in base 62. The mapping is a
pure function of the integer, so links stay valid across restarts.
"""
ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
BASE = len(ALPHABET)
INVALID_ID = -1

_INDEX = {char: value for value, char in enumerate(ALPHABET)}


def encode(paste_id: int) -> str:
    """Encode a non-negative integer as a short id."""
    if paste_id < 0:
        raise ValueError(f"cannot encode negative id {paste_id}")

    digits = []
    while True:
        paste_id, remainder = divmod(paste_id, BASE)
        digits.append(ALPHABET[remainder])
        if paste_id == 0:
            break
    return "".join(reversed(digits))


def decode(code: str) -> int:
    """
    Decode a short id back to the integer it encodes.

    Codes with characters outside the alphabet decode to INVALID_ID, which
    no stored paste has, so they surface as a normal "not found".
    """
    if not code:
        return INVALID_ID

    value = 0
    for char in code:
        digit = _INDEX.get(char)
        if digit is None:
            return INVALID_ID
        value = value * BASE + digit
    return value
