from __future__ import annotations

import re
import secrets
import uuid
from typing import Container

CODE_PREFIX = "SANTA-"
CODE_LENGTH = 6
# no 0/1/O/I
CODE_CHARS = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

_CODE_RE = re.compile(r"^SANTA-[%s]{%d}$" % (CODE_CHARS, CODE_LENGTH))


def new_id() -> str:
    return uuid.uuid4().hex


def _random_code() -> str:
    return CODE_PREFIX + "".join(secrets.choice(CODE_CHARS) for _ in range(CODE_LENGTH))


def generate_group_code(existing_codes: Container[str] = ()) -> str:
    code = _random_code()
    while code in existing_codes:
        code = _random_code()
    return code


def normalize_code(value: str) -> str:
    return (value or "").strip().upper()


def is_group_code(value: str) -> bool:
    return bool(_CODE_RE.match(normalize_code(value)))
