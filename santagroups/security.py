from __future__ import annotations

import base64
import hashlib
from typing import Mapping

from cryptography.fernet import Fernet, InvalidToken


# ---------------------------------------------------------------------------
# Assignment encryption-at-rest
#
# Receivers are sealed before they reach either store, so the JSON file or the
# database does not show who drew whom on casual inspection.
#
# NOTE: anyone holding ASSIGNMENT_ENC_KEY or SECRET_KEY can still decrypt.
# ---------------------------------------------------------------------------


def assignment_fernet(config: Mapping) -> Fernet:
    """Returns a Fernet instance keyed by ASSIGNMENT_ENC_KEY or derived from SECRET_KEY."""
    explicit = (config.get("ASSIGNMENT_ENC_KEY") or "").strip()
    if explicit:
        # Expect a urlsafe base64-encoded 32-byte key.
        return Fernet(explicit.encode("utf-8"))

    # Derive a stable key from SECRET_KEY so unsealing works across restarts.
    secret = (config.get("SECRET_KEY") or "").encode("utf-8")
    digest = hashlib.sha256(b"santagroups-assignments|" + secret).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def seal_receiver(fernet: Fernet, receiver_id: str) -> str:
    """Encrypt receiver_id -> ciphertext token (string)."""
    return fernet.encrypt(str(receiver_id).encode("utf-8")).decode("utf-8")


def open_receiver(fernet: Fernet, token: str) -> str:
    """Decrypt ciphertext token -> receiver_id. Raises ValueError on failure."""
    try:
        return fernet.decrypt(token.encode("utf-8")).decode("utf-8")
    except (InvalidToken, ValueError, TypeError, AttributeError) as e:
        raise ValueError("Invalid assignment token") from e
