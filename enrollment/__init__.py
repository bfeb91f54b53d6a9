"""Capacity-bounded enrollment ledger.

Components are stateless between calls; each one is built from the Flask
config it should use.
"""
from enrollment.checkout import CheckoutSettings, ReservationInitiator
from enrollment.notify import EmailNotifier
from enrollment.reconciler import ConfirmationReconciler, Outcome
from enrollment.transaction import LedgerSettings
from enrollment.waitlist import WaitlistManager


def make_initiator(config, gateway=None) -> ReservationInitiator:
    return ReservationInitiator(CheckoutSettings.from_config(config), gateway=gateway)


def make_reconciler(config) -> ConfirmationReconciler:
    return ConfirmationReconciler(LedgerSettings.from_config(config), notifier=EmailNotifier(config))


def make_waitlist(config) -> WaitlistManager:
    return WaitlistManager(LedgerSettings.from_config(config), notifier=EmailNotifier(config))
