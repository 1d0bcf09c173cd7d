import pytest

from santagroups.services import identifiers
from santagroups.services.identifiers import (
    CODE_CHARS,
    generate_group_code,
    is_group_code,
    new_id,
    normalize_code,
)


def test_code_alphabet_has_no_ambiguous_characters():
    assert len(CODE_CHARS) == 32
    assert not set("01OI") & set(CODE_CHARS)


def test_generated_code_shape():
    code = generate_group_code()
    assert code.startswith("SANTA-")
    assert len(code) == len("SANTA-") + 6
    assert all(c in CODE_CHARS for c in code[len("SANTA-"):])
    assert is_group_code(code)


def test_generated_code_avoids_existing(monkeypatch):
    drawn = iter(["SANTA-AAAAAA", "SANTA-BBBBBB", "SANTA-CCCCCC"])
    monkeypatch.setattr(identifiers, "_random_code", lambda: next(drawn))
    assert generate_group_code({"SANTA-AAAAAA", "SANTA-BBBBBB"}) == "SANTA-CCCCCC"


def test_ids_are_unique():
    ids = {new_id() for _ in range(1000)}
    assert len(ids) == 1000


@pytest.mark.parametrize("value,expected", [
    ("santa-abcdef", True),
    (" SANTA-XYZ234 ", True),
    ("SANTA-ABC", False),
    ("SANTA-ABCDE0", False),
    ("4f1c2d", False),
])
def test_is_group_code(value, expected):
    assert is_group_code(value) is expected


def test_normalize_code():
    assert normalize_code("  santa-abcdef ") == "SANTA-ABCDEF"
