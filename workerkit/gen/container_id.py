"""Random unique identifiers for containers, directories and users."""

from __future__ import annotations

import secrets
from collections.abc import Iterable

# Base64 alphabet with the last two symbols replaced by 's' and 'z'.
ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789sz"

ID_LENGTH = 12
DID_LENGTH = 48
NAME_LENGTH = 10


def random_string(length: int) -> str:
    """Return ``length`` random characters from :data:`ALPHABET`."""
    if length < 0:
        raise ValueError("length must not be negative")
    return "".join(ALPHABET[byte % 64] for byte in secrets.token_bytes(length))


def _generate(known: set[str], length: int) -> str:
    while True:
        candidate = random_string(length)
        if candidate not in known:
            known.add(candidate)
            return candidate


class ContainerIdGenerator:
    """Hands out identifiers that do not collide with ones already issued."""

    def __init__(self, known_ids: Iterable[str] = (), known_dids: Iterable[str] = ()) -> None:
        self._known_ids: set[str] = set(known_ids)
        self._known_dids: set[str] = set(known_dids)
        self._known_uids: set[int] = set()

    def generate_unique_id(self) -> str:
        """Return a new 12-character container id."""
        return _generate(self._known_ids, ID_LENGTH)

    def generate_unique_did(self) -> str:
        """Return a new 48-character directory id.

        Uniqueness is tracked against the container id set.
        """
        return _generate(self._known_ids, DID_LENGTH)

    def generate_unique_uid(self) -> int:
        """Return a new unsigned 32-bit id."""
        while True:
            candidate = secrets.randbits(32)
            if candidate not in self._known_uids:
                self._known_uids.add(candidate)
                return candidate

    def remove_id(self, id_: str) -> bool:
        """Forget a container id; return whether it was known."""
        return _discard(self._known_ids, id_)

    def remove_did(self, id_: str) -> bool:
        """Forget a directory id; return whether it was known."""
        return _discard(self._known_dids, id_)

    def random_unique_name(self, names: Iterable[str]) -> str:
        """Return a 10-character name not among ``names``."""
        return _generate(set(names), NAME_LENGTH)


def _discard(known: set[str], id_: str) -> bool:
    if id_ not in known:
        return False
    known.remove(id_)
    return True