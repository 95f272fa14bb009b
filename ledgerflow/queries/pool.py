"""
Credit Pool Synchronizer

Credit accounts at the same bank can share one limit and one available
credit baseline ("combined credit pool"). Pool membership is the
`is_in_combined_credit_pool` flag plus the bank name; there is no stored
pool object. The bank -> account ids index is derived on demand.

Canonical values: walking the bank's pooled accounts in stable order
(bank name, account name, then storage order), the first strictly
positive credit_limit is the pool limit and the first strictly positive
balance is the pool baseline.

sync_pool() writes the canonical values onto every pooled sibling but
never commits; the caller saves once with the rest of its mutation.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from ledgerflow.models.ledger import Account, Transaction, TransactionType, TransferLeg
from ledgerflow.services.storage.interface import LedgerStorageInterface


logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


def bank_key(bank_name: str) -> str:
    """Pool matching key: trimmed and case-folded bank name."""
    return bank_name.strip().casefold()


class CreditPool:
    """Pool queries and synchronization over a ledger store."""

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    # ===== MEMBERSHIP =====

    def pooled_accounts(self, bank_name: str) -> list[Account]:
        """Pooled credit accounts of one bank, in canonical order."""
        key = bank_key(bank_name)
        members = [
            account for account in self._storage.fetch(Account)
            if account.is_pooled and bank_key(account.bank_name) == key
        ]
        return sorted(members, key=lambda a: (a.bank_name, a.account_name))

    def pool_index(self) -> dict[str, list[UUID]]:
        """Bank key -> ids of its pooled credit accounts."""
        index: dict[str, list[UUID]] = {}
        for account in sorted(self._storage.fetch(Account), key=lambda a: (a.bank_name, a.account_name)):
            if account.is_pooled:
                index.setdefault(bank_key(account.bank_name), []).append(account.id)
        return index

    def pool_account_ids(self, account_id: UUID) -> list[UUID]:
        """
        Accounts whose spending counts against this account's credit.

        A non-pooled (or unknown) account only counts itself.
        """
        account = self._storage.get(Account, account_id)
        if account is None or not account.is_pooled:
            return [account_id]
        ids = [a.id for a in self.pooled_accounts(account.bank_name)]
        if account.id not in ids:
            ids.append(account.id)
        return ids

    def pooled_card_count(self, account_id: UUID) -> int:
        return len(self.pool_account_ids(account_id))

    # ===== CANONICAL VALUES =====

    def bank_credit_limit(self, bank_name: str) -> Optional[Decimal]:
        for account in self.pooled_accounts(bank_name):
            if account.credit_limit > 0:
                return account.credit_limit
        return None

    def bank_available_baseline(self, bank_name: str) -> Optional[Decimal]:
        for account in self.pooled_accounts(bank_name):
            if account.balance > 0:
                return account.balance
        return None

    def sync_pool(self, bank_name: str) -> int:
        """
        Copy the canonical limit and baseline onto every pooled sibling.

        Returns:
            Number of pooled accounts at the bank
        """
        if not bank_name.strip():
            return 0
        members = self.pooled_accounts(bank_name)
        limit = self.bank_credit_limit(bank_name)
        baseline = self.bank_available_baseline(bank_name)
        for account in members:
            if limit is not None:
                account.credit_limit = limit
            if baseline is not None:
                account.balance = baseline
        if members:
            logger.debug(
                "Pool synced",
                bank=bank_key(bank_name),
                accounts=len(members),
                limit=str(limit) if limit is not None else None,
                baseline=str(baseline) if baseline is not None else None,
            )
        return len(members)

    # ===== AVAILABLE CREDIT =====

    def shared_available_credit(self, account_id: UUID) -> Decimal:
        """
        Credit still available to a card, never negative.

        baseline - max(0, expenses - (incomes + transfers in)), summed
        over every account in the pool.
        """
        account = self._storage.get(Account, account_id)
        if account is None or not account.is_credit:
            return ZERO

        if account.is_pooled:
            baseline = self.bank_available_baseline(account.bank_name)
            if baseline is None:
                baseline = account.balance
        else:
            baseline = account.balance

        ids = set(self.pool_account_ids(account_id))
        spent = ZERO
        repaid = ZERO
        for txn in self._storage.fetch(Transaction):
            if txn.account_id not in ids:
                continue
            if txn.type == TransactionType.EXPENSE:
                spent += txn.amount
            elif txn.type == TransactionType.INCOME:
                repaid += txn.amount
            elif txn.transfer_leg == TransferLeg.IN:
                repaid += txn.amount

        net_spent = max(ZERO, spent - repaid)
        return max(ZERO, baseline - net_spent)
