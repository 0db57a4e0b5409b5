import secrets

from fileshare.core.config import settings

MIN_TOKEN_BYTES = 16


class TokenGenerator:
    """Issues opaque share tokens as hex strings from the OS CSPRNG."""

    def __init__(self, num_bytes: int = settings.SHARE_TOKEN_BYTES):
        if num_bytes < MIN_TOKEN_BYTES:
            raise ValueError(f"Share tokens need at least {MIN_TOKEN_BYTES} random bytes")
        self.num_bytes = num_bytes

    def generate(self) -> str:
        return secrets.token_hex(self.num_bytes)
