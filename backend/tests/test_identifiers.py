import pytest

from givabit.services.link_hash import LinkHasher
from givabit.services.shortcode import ALPHABET, ShortCodeAllocator

EMPTY_KECCAK = "0xc5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"


def test_short_code_shape():
    code = ShortCodeAllocator().allocate()
    assert len(code) == 7
    assert set(code) <= set(ALPHABET)


def test_alphabet_is_url_safe_and_64_symbols():
    assert len(set(ALPHABET)) == 64
    assert all(ch.isalnum() or ch in "_-" for ch in ALPHABET)


def test_short_codes_do_not_repeat():
    allocator = ShortCodeAllocator()
    codes = {allocator.allocate() for _ in range(2000)}
    assert len(codes) == 2000


def test_custom_length():
    assert len(ShortCodeAllocator(length=12).allocate()) == 12
    with pytest.raises(ValueError):
        ShortCodeAllocator(length=0)


def test_link_hash_is_keccak256_of_utf8_bytes():
    assert LinkHasher().hash("") == EMPTY_KECCAK


def test_link_hash_is_deterministic():
    hasher = LinkHasher()
    first = hasher.hash("https://example.com/a")
    assert first == hasher.hash("https://example.com/a")
    assert first.startswith("0x") and len(first) == 66


@pytest.mark.parametrize(
    "other",
    ["https://example.com/a/", "https://EXAMPLE.com/a", "https://example.com/A", "https://example.com/a "],
)
def test_link_hash_does_not_normalize(other):
    hasher = LinkHasher()
    assert hasher.hash("https://example.com/a") != hasher.hash(other)


def test_link_hash_handles_non_ascii():
    hasher = LinkHasher()
    assert hasher.hash("https://example.com/café") != hasher.hash("https://example.com/cafe")
