from __future__ import annotations

import secrets
import string

# 64 URL-safe symbols (same alphabet as nanoid)
ALPHABET = string.ascii_letters + string.digits + "_-"


class ShortCodeAllocator:
    """
    Random fixed-length short codes for buy/access URLs.

    Uniqueness is not checked here: callers insert optimistically and ask
    for a fresh code when the store reports a collision.
    """

    def __init__(self, length: int = 7, alphabet: str = ALPHABET) -> None:
        if length < 1:
            raise ValueError("short code length must be positive")
        self.length = length
        self.alphabet = alphabet

    def allocate(self) -> str:
        return "".join(secrets.choice(self.alphabet) for _ in range(self.length))
