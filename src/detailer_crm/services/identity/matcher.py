"""Reconciliation of a canonical identity against existing customer records."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from ...models.domain import CanonicalIdentity, CustomerRecord


class MatchStrategy(ABC):
    """One ranked way of deciding that two identities are the same customer."""

    name: str

    @abstractmethod
    def identities_match(self, left: CanonicalIdentity, right: CanonicalIdentity) -> bool:
        raise NotImplementedError

    def matches(self, identity: CanonicalIdentity, record: CustomerRecord) -> bool:
        return self.identities_match(identity, record.identity)


class ByE164(MatchStrategy):
    name = "e164"

    def identities_match(self, left: CanonicalIdentity, right: CanonicalIdentity) -> bool:
        return left.e164 is not None and right.e164 is not None and left.e164 == right.e164


class ByLast10(MatchStrategy):
    """Fallback for when at least one side has no derivable E.164 form.

    Two numbers that both normalized to different E.164 values are different
    customers even if their last ten digits collide across country codes.
    """

    name = "last10"

    def identities_match(self, left: CanonicalIdentity, right: CanonicalIdentity) -> bool:
        if left.last10 is None or right.last10 is None or left.last10 != right.last10:
            return False
        return left.e164 is None or right.e164 is None or left.e164 == right.e164


# Precedence order; first strategy with any hit wins.
DEFAULT_STRATEGIES: tuple[MatchStrategy, ...] = (ByE164(), ByLast10())


@dataclass(frozen=True, slots=True)
class MatchResult:
    record: CustomerRecord
    strategy: str


def _recency_key(record: CustomerRecord) -> tuple:
    return (record.updated_at, record.created_at, record.id)


def find_match(
    identity: CanonicalIdentity,
    candidates: Iterable[CustomerRecord],
    strategies: Sequence[MatchStrategy] = DEFAULT_STRATEGIES,
) -> Optional[MatchResult]:
    """Pick at most one existing record for ``identity``.

    Several records hitting the same strategy (duplicate ``last10`` in storage)
    resolve to the most recently updated one, then the most recently created,
    then the highest id, so the outcome never depends on query order.
    """
    if identity.is_empty:
        return None
    pool = list(candidates)
    for strategy in strategies:
        hits = [record for record in pool if strategy.matches(identity, record)]
        if hits:
            return MatchResult(record=max(hits, key=_recency_key), strategy=strategy.name)
    return None


def identities_match(
    left: CanonicalIdentity,
    right: CanonicalIdentity,
    strategies: Sequence[MatchStrategy] = DEFAULT_STRATEGIES,
) -> bool:
    return any(strategy.identities_match(left, right) for strategy in strategies)
