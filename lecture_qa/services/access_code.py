"""
Access Code Module
Generates the short join codes participants type to enter a live session
"""
import random
import string
from typing import Optional

ACCESS_CODE_ALPHABET = string.ascii_uppercase + string.digits
ACCESS_CODE_LENGTH = 6


def normalize_access_code(code: str) -> str:
    """Codes are case-insensitive on input and stored uppercase"""
    return code.strip().upper()


class AccessCodeGenerator:
    """Produces short, human-typeable codes; uniqueness is the caller's job."""

    def __init__(self, length: int = ACCESS_CODE_LENGTH, rng: Optional[random.Random] = None):
        """
        Args:
            length: Number of characters per code
            rng: Random source; defaults to SystemRandom. Tests pass a seeded
                random.Random for reproducible codes.

        Raises:
            ValueError: If length is not positive
        """
        if length < 1:
            raise ValueError("Access code length must be positive")
        self.length = length
        self._rng = rng or random.SystemRandom()

    def generate(self) -> str:
        """
        Draw a new code from uppercase letters and digits

        Returns:
            Code of `length` characters, already in stored (uppercase) form.
            It is not checked against open sessions.
        """
        return "".join(self._rng.choice(ACCESS_CODE_ALPHABET) for _ in range(self.length))
