"""Loyalty Ledger: the only writer of user point balances.

Each operation reloads the user under that user's lock and persists the new
balance before releasing it. ``settle`` applies the redemption and the award
for one order as a single write, so no reader ever sees one without the
other.
"""

from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from storefront.customer.user import User
from storefront.utils.locks import balance_locks

logger = structlog.get_logger(__name__)


def _adjust(user_id, debit=0, credit=0, reason=None) -> int:
    with balance_locks.hold(user_id):
        repo = current_domain.repository_for(User)
        user = repo.get(user_id)
        user.adjust_points(debit=debit, credit=credit, reason=reason)
        repo.add(user)
        balance = user.loyalty_points

    logger.info(
        "loyalty_points_adjusted",
        user_id=str(user_id),
        debited=debit,
        credited=credit,
        balance=balance,
        reason=reason,
    )
    return balance


def balance(user_id) -> int:
    return current_domain.repository_for(User).get(user_id).loyalty_points or 0


def debit(user_id, points: int, reason=None) -> int:
    """Redeem points; raises ``InsufficientPoints`` if the balance is short."""
    return _adjust(user_id, debit=points, reason=reason)


def credit(user_id, points: int, reason=None) -> int:
    return _adjust(user_id, credit=points, reason=reason)


@dataclass(frozen=True)
class LoyaltySettlement:
    user_id: str
    redeemed: int
    earned: int
    reference: str | None = None

    def reverse(self) -> int:
        """Take back the award and refund the redemption in one write."""
        return _adjust(
            self.user_id,
            debit=self.earned,
            credit=self.redeemed,
            reason=f"reversal:{self.reference}" if self.reference else "reversal",
        )


def settle(user_id, redeemed: int, earned: int, reference=None) -> LoyaltySettlement:
    """Debit ``redeemed`` and credit ``earned`` for one order."""
    _adjust(user_id, debit=redeemed, credit=earned, reason=reference)
    return LoyaltySettlement(user_id=str(user_id), redeemed=redeemed, earned=earned, reference=reference)
