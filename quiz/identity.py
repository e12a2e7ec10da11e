"""Identity - Tokens de convite e de retomada de tentativas."""

from __future__ import annotations

import base64
import binascii
import secrets

from .errors import ValidationError


def new_resumption_token() -> str:
    """Token opaco e unico usado para retomar uma tentativa anonima."""
    return secrets.token_hex(16)


class InviteTokenCodec:
    """Codifica/decodifica o link de convite auto-descritivo.

    O token e ``base64("email||quiz_id")``; aceita tanto o alfabeto padrao
    quanto o url-safe, com ou sem padding.

    Example:
        >>> token = InviteTokenCodec.encode("ana@uni.edu", "quiz-1")
        >>> InviteTokenCodec.decode(token)
        ('ana@uni.edu', 'quiz-1')
    """

    SEPARATOR = "||"

    @classmethod
    def encode(cls, email: str, quiz_id: str) -> str:
        raw = f"{email.strip().lower()}{cls.SEPARATOR}{quiz_id}".encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    @classmethod
    def decode(cls, token: str) -> tuple[str, str]:
        """Extrai (email, quiz_id) do token.

        Raises:
            ValidationError: Token malformado
        """
        cleaned = (token or "").strip().replace("-", "+").replace("_", "/")
        cleaned += "=" * (-len(cleaned) % 4)
        try:
            decoded = base64.b64decode(cleaned, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            raise ValidationError("Invalid quiz link") from e

        email, sep, quiz_id = decoded.partition(cls.SEPARATOR)
        email = email.strip().lower()
        quiz_id = quiz_id.strip()
        if not sep or not email or not quiz_id or "@" not in email:
            raise ValidationError("Invalid quiz link")
        return email, quiz_id
