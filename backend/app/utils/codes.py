"""
Random code helpers for invite codes, offer codes and referral codes.

Codes are drawn from an unambiguous alphabet (no 0/O/1/I) and checked
against the database; a collision triggers a retry up to a small bound.
"""
import secrets
from typing import Awaitable, Callable, Optional

from app.core.config import settings
from app.core.exceptions import CodeGenerationError


def generate_code(length: Optional[int] = None, alphabet: Optional[str] = None) -> str:
    """Random code from the invite-code alphabet"""
    length = length or settings.INVITE_CODE_LENGTH
    alphabet = alphabet or settings.INVITE_CODE_ALPHABET
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_referral_code() -> str:
    """8 upper-case hex characters"""
    return secrets.token_hex(4).upper()


async def generate_unique_code(
    exists: Callable[[str], Awaitable[bool]],
    generator: Callable[[], str] = generate_code,
    max_attempts: Optional[int] = None,
) -> str:
    """
    Generate a code for which ``exists(code)`` is False.

    Raises CodeGenerationError after ``max_attempts`` collisions. The
    database unique constraint still guards against a concurrent insert
    of the same code.
    """
    max_attempts = max_attempts or settings.INVITE_CODE_MAX_ATTEMPTS
    for _ in range(max_attempts):
        code = generator()
        if not await exists(code):
            return code
    raise CodeGenerationError(max_attempts)
