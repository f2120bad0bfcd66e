"""Document identity normalisation.

Cut sheets are keyed by a human-entered ``(manufacturer, part_number)``
pair.  Two pure functions derive everything the stores need from it:

* ``normalize_part`` -- comparison form: case-folded with ``-``, ``_``
  and whitespace removed, so ``"ACH550-01"`` and ``"ach550 01"`` match.
* ``manifest_key`` -- stable manifest dictionary key: lower-cased, every
  character outside ``[a-z0-9]`` replaced with ``-``, manufacturer and
  part number joined with ``-``.

Both the metadata store and the manifest store import these; nothing
else in the package normalises identities on its own.
"""

from __future__ import annotations

import re

from pydantic import BaseModel

_STRIP_PATTERN = re.compile(r"[-_\s]")
_KEY_PATTERN = re.compile(r"[^a-z0-9]")


def normalize_part(value: str) -> str:
    """Return the comparison form of one identity component."""
    return _STRIP_PATTERN.sub("", (value or "").casefold())


def _key_part(value: str) -> str:
    return _KEY_PATTERN.sub("-", (value or "").lower())


class DocumentIdentity(BaseModel):
    """A ``(manufacturer, part_number)`` pair identifying one cut sheet.

    Equality and hashing use the normalised form, so identities entered
    with different case or separators compare equal.
    """

    manufacturer: str
    part_number: str

    model_config = {"frozen": True}

    @property
    def normalized(self) -> tuple[str, str]:
        return (
            normalize_part(self.manufacturer),
            normalize_part(self.part_number),
        )

    @property
    def key(self) -> str:
        return manifest_key(self.manufacturer, self.part_number)

    def matches(self, other: DocumentIdentity) -> bool:
        """Exact match on the normalised form."""
        return self.normalized == other.normalized

    def loosely_matches(self, other: DocumentIdentity) -> bool:
        """Substring match on each normalised component.

        Tolerates truncated or suffixed entries such as ``"ABB"`` vs
        ``"ABB Drives"``.  Empty components never match loosely.
        """
        mine, theirs = self.normalized, other.normalized
        for a, b in zip(mine, theirs):
            if not a or not b:
                return False
            if a not in b and b not in a:
                return False
        return True

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DocumentIdentity):
            return NotImplemented
        return self.normalized == other.normalized

    def __hash__(self) -> int:
        return hash(self.normalized)

    def __str__(self) -> str:
        return f"{self.manufacturer} {self.part_number}"


def manifest_key(manufacturer: str, part_number: str) -> str:
    """Build the manifest key for an identity.

    >>> manifest_key("ABB", "ACH550-01")
    'abb-ach550-01'
    """
    return f"{_key_part(manufacturer)}-{_key_part(part_number)}"


def part_number_from_key(key: str, manufacturer: str) -> str:
    """Recover a part number from a manifest key.

    Manifests written by older clients omit ``part_number``; the key
    still carries it after the manufacturer prefix.  Returns the key
    unchanged when the prefix does not match.
    """
    prefix = f"{_key_part(manufacturer)}-"
    if manufacturer and key.startswith(prefix):
        return key[len(prefix):]
    return key
