import logging
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from tenacity import RetryError, Retrying, retry_if_exception_type, stop_after_attempt, wait_incrementing

from models import db
from enrollment.errors import TransactionFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerSettings:
    max_attempts: int = 3
    retry_backoff_seconds: float = 0.2
    lock_timeout_ms: int = 5000

    @classmethod
    def from_config(cls, config) -> "LedgerSettings":
        return cls(
            max_attempts=max(1, int(config.get("LEDGER_MAX_ATTEMPTS", 3))),
            retry_backoff_seconds=float(config.get("LEDGER_RETRY_BACKOFF_SECONDS", 0.2)),
            lock_timeout_ms=int(config.get("LEDGER_LOCK_TIMEOUT_MS", 5000)),
        )


def _apply_timeouts(settings: LedgerSettings) -> None:
    # SET LOCAL only lives until the end of the current transaction.
    # SQLite has no per-transaction equivalent; its driver busy timeout applies instead.
    if db.session.get_bind().dialect.name != "postgresql":
        return
    lock_ms = int(settings.lock_timeout_ms)
    db.session.execute(text(f"SET LOCAL lock_timeout = '{lock_ms}ms'"))
    db.session.execute(text(f"SET LOCAL statement_timeout = '{lock_ms * 2}ms'"))


def _log_retry(name: str, settings: LedgerSettings):
    def before_sleep(retry_state):
        logger.warning(
            "%s: transient database error on attempt %d/%d, retrying in %.2fs: %s",
            name, retry_state.attempt_number, settings.max_attempts,
            retry_state.next_action.sleep, retry_state.outcome.exception(),
        )
    return before_sleep


def run_in_transaction(work, settings: LedgerSettings, name: str = "ledger"):
    """
    Run ``work()`` inside one database transaction and commit it.

    Serialization failures, deadlocks and lock timeouts surface from the
    driver as OperationalError; the whole transaction is rolled back and
    replayed up to ``settings.max_attempts`` times with linear backoff.
    Any other exception rolls back and propagates unchanged.
    """
    def attempt():
        try:
            _apply_timeouts(settings)
            result = work()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    backoff = settings.retry_backoff_seconds
    retrying = Retrying(
        stop=stop_after_attempt(settings.max_attempts),
        wait=wait_incrementing(start=backoff, increment=backoff),
        retry=retry_if_exception_type(OperationalError),
        before_sleep=_log_retry(name, settings),
    )
    try:
        return retrying(attempt)
    except RetryError as exc:
        last = exc.last_attempt
        logger.error("%s: transaction failed after %d attempts: %s", name, last.attempt_number, last.exception())
        raise TransactionFailed(attempts=last.attempt_number) from last.exception()
