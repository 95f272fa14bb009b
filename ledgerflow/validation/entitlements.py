"""
Entitlement Policies

The engine asks an injected policy whether the user may create one more
account or one more entry this month. The policy only answers yes/no for
a count; counting is the engine's job.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ledgerflow.config import LedgerSettings, get_settings


class EntitlementPolicy(ABC):
    """Answers quota questions for the Ledger Mutator."""

    @abstractmethod
    def can_add_transaction(self, monthly_count: int) -> bool:
        """May one more entry be recorded, given `monthly_count` this month?"""
        pass

    @abstractmethod
    def can_add_account(self, account_count: int) -> bool:
        """May one more account be created, given `account_count` existing?"""
        pass


class UnlimitedEntitlements(EntitlementPolicy):
    """Paid tier: everything is allowed."""

    def can_add_transaction(self, monthly_count: int) -> bool:
        return True

    def can_add_account(self, account_count: int) -> bool:
        return True


class FreeTierEntitlements(EntitlementPolicy):
    """Free tier with fixed account and monthly entry limits."""

    def __init__(self, settings: Optional[LedgerSettings] = None):
        settings = settings or get_settings().ledger
        self.account_limit = settings.free_account_limit
        self.monthly_transaction_limit = settings.free_monthly_transaction_limit

    def can_add_transaction(self, monthly_count: int) -> bool:
        return monthly_count < self.monthly_transaction_limit

    def can_add_account(self, account_count: int) -> bool:
        return account_count < self.account_limit
