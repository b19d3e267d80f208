"""
Validation and normalization of caller supplied info hashes.
"""
import re
from typing import Dict, Iterable, List, NamedTuple, Union

from .errors import ErrorLog, InfoHashRangeError

MAX_INFOHASHES = 64

_HEX_RE = re.compile(r"[0-9a-f]{40}", re.IGNORECASE)


class InfoHash(NamedTuple):
    """A validated info hash: the caller's hex text and its 20 raw bytes."""
    hex: str
    raw: bytes

    @classmethod
    def from_hex(cls, value: str) -> "InfoHash":
        if not isinstance(value, str) or not _HEX_RE.fullmatch(value):
            raise ValueError(f"Not a 40 character hex info hash: {value!r}")
        return cls(value, bytes.fromhex(value))


def normalize_infohashes(hashes: Union[str, Iterable[str]], errors: ErrorLog) -> List[InfoHash]:
    """
    Turn one hash or a list of hashes into InfoHash values.

    Malformed entries are dropped and logged one by one. Raises
    InfoHashRangeError when fewer than 1 or more than MAX_INFOHASHES
    valid hashes remain.
    """
    if isinstance(hashes, str):
        hashes = [hashes]
    elif hashes is None:
        hashes = []
    elif not isinstance(hashes, Iterable):
        errors.add(f"Invalid infohash skipped ({hashes!r}).")
        hashes = []

    # Spellings differing only in case share the first one seen
    spelling: Dict[bytes, str] = {}
    valid = []
    for item in hashes:
        try:
            info_hash = InfoHash.from_hex(item)
        except ValueError:
            errors.add(f"Invalid infohash skipped ({item}).")
            continue
        first = spelling.setdefault(info_hash.raw, info_hash.hex)
        valid.append(info_hash._replace(hex=first))

    total = len(valid)
    if total > MAX_INFOHASHES or total < 1:
        raise InfoHashRangeError(f"Invalid amount of valid infohashes ({total}).")

    return valid
