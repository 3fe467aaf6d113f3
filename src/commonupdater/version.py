"""Dotted-integer version numbers."""

import re
from dataclasses import dataclass
from functools import total_ordering

from commonupdater.errors import ParseError

# major.minor[.patch[.build]]
_VERSION_PATTERN = re.compile(r"\d+(?:\.\d+){1,3}")


@total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """An immutable version made of two to four non-negative integers.

    Comparison is lexicographic with missing trailing components treated
    as zero, so ``1.2`` equals ``1.2.0.0``.
    """

    parts: tuple[int, ...]

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Parse a dotted string such as ``1.4.0`` or ``2.0.1.17``.

        Raises:
            ParseError: If the string is not two to four dot-separated
                non-negative integers.
        """
        if not isinstance(text, str) or not _VERSION_PATTERN.fullmatch(text):
            raise ParseError(f"Malformed version string: {text!r}")
        return cls(tuple(int(part) for part in text.split(".")))

    def _key(self) -> tuple[int, ...]:
        padded = self.parts + (0,) * (4 - len(self.parts))
        return padded

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return ".".join(str(part) for part in self.parts)
