"""
Policies for choosing which published key verifies a token.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping

from ..config import KEY_SELECTION_ARBITRARY, KEY_SELECTION_KID
from ..errors import EmptyKeySetError, UnknownKeyIdError


class KeySelectionPolicy(ABC):
    """Picks a PEM from the key set given the token's unverified header."""

    name: str = ""

    @abstractmethod
    def select_key(self, keys: Mapping[str, str], header: Dict[str, Any]) -> str:
        """Return the PEM to verify with, or raise a selection error."""


class KidMatchedSelection(KeySelectionPolicy):
    """Uses the key named by the token header's ``kid``."""

    name = KEY_SELECTION_KID

    def select_key(self, keys: Mapping[str, str], header: Dict[str, Any]) -> str:
        if not keys:
            raise EmptyKeySetError()

        kid = header.get("kid")
        if not isinstance(kid, str) or not kid:
            raise UnknownKeyIdError("Token header has no key id (kid)")

        try:
            return keys[kid]
        except KeyError:
            raise UnknownKeyIdError(
                f"Key not found: {kid}",
                details={"kid": kid, "known_kids": sorted(keys)}
            ) from None


class ArbitraryKeySelection(KeySelectionPolicy):
    """Legacy policy: ignores ``kid`` and takes the second key in iteration order.

    A single-key set yields its only key. Tokens signed with any other key
    fail with an invalid signature, so this is only useful for reproducing
    old behaviour.
    """

    name = KEY_SELECTION_ARBITRARY

    def select_key(self, keys: Mapping[str, str], header: Dict[str, Any]) -> str:
        if not keys:
            raise EmptyKeySetError()

        pems = list(keys.values())
        return pems[min(1, len(pems) - 1)]


def selection_policy(name: str) -> KeySelectionPolicy:
    """Build a policy from its configured name."""
    if name == KEY_SELECTION_KID:
        return KidMatchedSelection()
    if name == KEY_SELECTION_ARBITRARY:
        return ArbitraryKeySelection()
    raise ValueError(f"Unknown key selection policy: {name}")
