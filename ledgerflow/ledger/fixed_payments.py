"""
Fixed-Payment Poster

Turns recurring charge definitions into real expense entries when they
fall due. Runs on every refresh; running it twice on the same day posts
nothing the second time.

Per definition and run:
1. Past its end date (by calendar day)      -> retired, definition deleted
2. Non-positive amount, missing account, or
   not started yet                           -> skipped, looked at next run
3. Due date for the current cycle:
   - monthly: charge day (or charge date's day, or start day) clamped into
     this month; one charge per calendar month
   - yearly:  same day in the start date's month of this year; one charge
     per calendar year
   - weekly:  last charge + 7 days, or the start date if never charged
   Due dates carry the configured posting hour.
4. When due, an identical expense already in the due month (same account,
   amount, day and composed note) only moves last_charged_at. Otherwise a
   "Fixed Payment" expense is inserted and a cash account is debited.

All changes of one run are committed with one save.

DESIGN DECISION: last_charged_at records when the poster ran, not the due
date. A weekly definition therefore drifts to the weekday it was last
posted on when refreshes are late.
"""

from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import Callable, Optional

import structlog

from ledgerflow.audit.logger import AuditLogger
from ledgerflow.config import LedgerSettings, get_settings
from ledgerflow.models.audit import AuditEventBuilder
from ledgerflow.models.ledger import (
    FIXED_PAYMENT_CATEGORY,
    Account,
    FixedPayment,
    FixedPaymentFrequency,
    Transaction,
    TransactionType,
)
from ledgerflow.models.results import (
    FixedPaymentState,
    FixedPaymentStatus,
    PostingReport,
)
from ledgerflow.queries.periods import clamped_day, month_window
from ledgerflow.services.storage.interface import LedgerStorageInterface, StorageError


logger = structlog.get_logger(__name__)

ZERO = Decimal("0")
ONE_WEEK = timedelta(days=7)


def charge_day_of_month(definition: FixedPayment) -> int:
    if definition.charge_day is not None:
        return definition.charge_day
    if definition.charge_date is not None:
        return definition.charge_date.day
    return definition.start_date.day


def _weekday(moment: datetime) -> int:
    """1 = Sunday ... 7 = Saturday."""
    return moment.isoweekday() % 7 + 1


def _month_floor(moment: datetime) -> datetime:
    return datetime(moment.year, moment.month, 1)


def planned_amount(
    definition: FixedPayment,
    month_start: datetime,
    month_end: datetime,
) -> Decimal:
    """
    Amount a definition is expected to charge inside one calendar month.

    Monthly definitions count once they have started, yearly ones only in
    their start month, weekly ones once per matching weekday in the month.
    """
    if definition.start_date > month_end:
        return ZERO
    if definition.end_date is not None and definition.end_date < month_start:
        return ZERO

    if definition.frequency == FixedPaymentFrequency.MONTHLY:
        return definition.amount if _month_floor(definition.start_date) <= month_start else ZERO

    if definition.frequency == FixedPaymentFrequency.YEARLY:
        if definition.start_date.month != month_start.month:
            return ZERO
        return definition.amount if _month_floor(definition.start_date) <= month_start else ZERO

    start = max(definition.start_date, month_start)
    end = min(definition.end_date or month_end, month_end)
    if start > end:
        return ZERO

    requested = definition.charge_day or _weekday(definition.start_date)
    requested = max(1, min(7, requested))
    first_match = start + timedelta(days=(requested - _weekday(start) + 7) % 7)
    if first_match > end:
        return ZERO

    occurrences = (end - first_match).days // 7 + 1
    return definition.amount * occurrences


class FixedPaymentPoster:
    """
    Posts due fixed payments into the ledger.

    Usage:
        poster = FixedPaymentPoster(storage, audit)
        report = poster.apply_due(datetime.now())
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit: AuditLogger,
        settings: Optional[LedgerSettings] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self._storage = storage
        self._audit = audit
        self._post_hour = (settings or get_settings().ledger).fixed_payment_post_hour
        self._on_change = on_change or (lambda: None)

    # ===== SCHEDULING =====

    def _at_post_hour(self, day: datetime) -> datetime:
        return datetime.combine(day.date(), time(hour=self._post_hour))

    def due_date(self, definition: FixedPayment, now: datetime) -> datetime:
        """Due date of the cycle that `now` falls in (next due for weekly)."""
        if definition.frequency == FixedPaymentFrequency.WEEKLY:
            if definition.last_charged_at is not None:
                return definition.last_charged_at + ONE_WEEK
            return definition.start_date

        day = charge_day_of_month(definition)
        if definition.frequency == FixedPaymentFrequency.YEARLY:
            return self._at_post_hour(clamped_day(now.year, definition.start_date.month, day))
        return self._at_post_hour(clamped_day(now.year, now.month, day))

    def _charged_this_cycle(self, definition: FixedPayment, now: datetime) -> bool:
        last = definition.last_charged_at
        if last is None:
            return False
        if definition.frequency == FixedPaymentFrequency.MONTHLY:
            return (last.year, last.month) == (now.year, now.month)
        if definition.frequency == FixedPaymentFrequency.YEARLY:
            return last.year == now.year
        return now < last + ONE_WEEK

    def evaluate(self, definition: FixedPayment, now: datetime) -> FixedPaymentStatus:
        """Classify a definition against `now` without changing anything."""
        def status(state: FixedPaymentState, due: Optional[datetime] = None, detail: str = ""):
            return FixedPaymentStatus(
                definition_id=definition.id, state=state, due_date=due, detail=detail
            )

        if definition.end_date is not None and now.date() > definition.end_date.date():
            return status(FixedPaymentState.RETIRED, detail="end date passed")

        if definition.amount <= 0:
            return status(FixedPaymentState.SKIPPED, detail="non-positive amount")
        if self._storage.get(Account, definition.charge_account_id) is None:
            return status(FixedPaymentState.SKIPPED, detail="charge account missing")
        if now < definition.start_date:
            return status(FixedPaymentState.SKIPPED, detail="not started")

        due = self.due_date(definition, now)
        if self._charged_this_cycle(definition, now):
            return status(FixedPaymentState.POSTED_THIS_CYCLE, due)
        if due.date() < definition.start_date.date():
            return status(FixedPaymentState.PENDING, due, "due date before start date")
        if now >= due:
            return status(FixedPaymentState.DUE, due)
        return status(FixedPaymentState.PENDING, due)

    # ===== POSTING =====

    def _find_posted(self, definition: FixedPayment, account: Account, due: datetime) -> Optional[Transaction]:
        window = month_window(due)
        note = definition.composed_note
        for txn in self._storage.fetch(Transaction):
            if (
                txn.type == TransactionType.EXPENSE
                and window.contains(txn.date)
                and txn.account_id == account.id
                and txn.amount == definition.amount
                and txn.date.date() == due.date()
                and txn.note == note
            ):
                return txn
        return None

    def _retire(self, definition: FixedPayment, why: str, report: PostingReport) -> None:
        self._storage.delete(definition)
        report.retired_definition_ids.append(definition.id)
        self._audit.log(AuditEventBuilder.fixed_payment_retired(definition.id, definition.name, why))

    def _post(self, definition: FixedPayment, due: datetime, now: datetime, report: PostingReport) -> None:
        account = self._storage.get(Account, definition.charge_account_id)
        if definition.frequency == FixedPaymentFrequency.WEEKLY:
            entry_date = self._at_post_hour(due)
        else:
            entry_date = due

        existing = self._find_posted(definition, account, entry_date)
        if existing is not None:
            definition.last_charged_at = now
            report.deduplicated_definition_ids.append(definition.id)
            self._audit.log(
                AuditEventBuilder.fixed_payment_deduplicated(definition.id, existing.id, entry_date)
            )
            return

        txn = Transaction(
            type=TransactionType.EXPENSE,
            amount=definition.amount,
            account_id=account.id,
            category_name=FIXED_PAYMENT_CATEGORY,
            date=entry_date,
            note=definition.composed_note,
        )
        self._storage.insert(txn)
        if account.is_cash:
            account.balance -= definition.amount

        definition.last_charged_at = now
        if definition.outstanding_amount is not None:
            definition.outstanding_amount = max(ZERO, definition.outstanding_amount - definition.amount)
        if definition.cycles is not None:
            definition.cycles = max(0, definition.cycles - 1)

        report.posted_transaction_ids.append(txn.id)
        self._audit.log(
            AuditEventBuilder.fixed_payment_posted(
                definition.id, txn.id, format(definition.amount, "f"), entry_date
            )
        )

        if definition.outstanding_amount is not None and definition.outstanding_amount == 0:
            self._retire(definition, "fully repaid", report)
        elif definition.cycles is not None and definition.cycles == 0:
            self._retire(definition, "no cycles left", report)
        elif definition.end_date is not None and entry_date.date() >= definition.end_date.date():
            self._retire(definition, "final cycle posted", report)

    def apply_due(self, now: datetime) -> PostingReport:
        """
        Post every due definition, retire finished ones, commit once.

        Raises:
            StorageError: If the commit fails (logged as an audit event first)
        """
        report = PostingReport(ran_at=now)

        for definition in list(self._storage.fetch(FixedPayment)):
            status = self.evaluate(definition, now)
            if status.state == FixedPaymentState.RETIRED:
                self._retire(definition, status.detail, report)
            elif status.state == FixedPaymentState.SKIPPED:
                report.skipped_definition_ids.append(definition.id)
            elif status.state == FixedPaymentState.DUE:
                self._post(definition, status.due_date, now, report)

        if report.changed:
            try:
                self._storage.save()
            except StorageError as e:
                self._audit.log(AuditEventBuilder.persistence_failed("apply_due", str(e)))
                raise
            finally:
                self._on_change()

        logger.info(
            "Fixed payments applied",
            posted=len(report.posted_transaction_ids),
            deduplicated=len(report.deduplicated_definition_ids),
            retired=len(report.retired_definition_ids),
            skipped=len(report.skipped_definition_ids),
        )
        return report

    # ===== PLANNING =====

    def planned_outflow(self, now: datetime, month_offset: int = 0) -> Decimal:
        """Total every definition is expected to charge in a calendar month."""
        window = month_window(now, month_offset)
        return sum(
            (planned_amount(d, window.start, window.end) for d in self._storage.fetch(FixedPayment)),
            ZERO,
        )
