"""
Public key retrieval and selection.

Contains the sources that fetch Firebase's published signing certificates
and the policies that pick the one a token should be verified with.

Key points:
- Fetches always carry a timeout; retries are bounded and opt-in.
- The default source does not cache; wrap it in ``CachingKeySource`` to keep
  keys in memory for the advertised lifetime.
- Prefer kid (key id) selection when multiple keys are present.
"""

from .selection import (
    ArbitraryKeySelection,
    KeySelectionPolicy,
    KidMatchedSelection,
    selection_policy,
)
from .source import CachingKeySource, FetchedKeys, HttpKeySource, KeySource

__all__ = [
    "ArbitraryKeySelection",
    "CachingKeySource",
    "FetchedKeys",
    "HttpKeySource",
    "KeySelectionPolicy",
    "KeySource",
    "KidMatchedSelection",
    "selection_policy",
]
