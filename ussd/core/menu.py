"""
Menu state machine
------------------
One handler per Step. Each request replays the whole answer path, so every
handler re-validates the earlier answers it depends on (and the signed-in
ladder re-checks phone + PIN) before looking at the newest one.

Any invalid answer ends the session; there is no re-entry of a step.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

from ussd.core import prompts
from ussd.core.credentials import hash_pin, verify_pin
from ussd.core.outcomes import (
    MenuResult,
    PendingTransfer,
    TransferResult,
    TransferStatus,
    RECORD_WRITE_FAILED,
    cont,
    end,
)
from ussd.core.path_decoder import last_token
from ussd.core.state_machine import BRANCH_BALANCE, BRANCH_EXIT, BRANCH_SEND, Step
from ussd.core.validators import validate_amount, validate_currency, validate_phone, validate_pin
from ussd.observability.logging import log, mask_phone
from ussd.settlement.gateway import SettlementError
from ussd.store.account_repo import DirectoryError, DuplicateAccountError
from ussd.store.idempotency import IdempotencyUnavailable, idempotency_key
from ussd.store.models import Account, new_account
from ussd.utils.money import format_amount, parse_balance

CONFIRM_YES = "1"
CONFIRM_NO = "2"


@dataclass(frozen=True)
class SessionContext:
    session_id: str = ""
    service_code: str = ""
    caller_phone: str = ""
    # Raw cumulative text as received; part of the replay key
    text: str = ""


Handler = Callable[[Sequence[str], SessionContext, "object"], MenuResult]


# ---------------------------------------------------------------------------
# Shared checks
# ---------------------------------------------------------------------------
def _authenticate(tokens: Sequence[str], services) -> Tuple[Optional[Account], Optional[MenuResult]]:
    """tokens[1] = phone, tokens[2] = PIN. Returns (account, None) or (None, terminal screen)."""
    phone = validate_phone(tokens[1])
    if not phone.ok:
        return None, end(prompts.INVALID_PHONE, "format_error")
    pin = validate_pin(tokens[2])
    if not pin.ok:
        return None, end(prompts.INVALID_PIN, "format_error")
    try:
        account = services.directory.find_by_phone(phone.value)
    except DirectoryError as e:
        log(event="menu_directory_error", stage="authenticate", errorType=type(e).__name__)
        return None, end(prompts.GENERIC_ERROR, "directory_error")
    if account is None:
        return None, end(prompts.NO_ACCOUNT, "not_found")
    if not verify_pin(pin.value, account.pin):
        return None, end(prompts.INCORRECT_PIN, "incorrect_pin")
    return account, None


def _transfer_answers(tokens: Sequence[str], services) -> Tuple[dict, Optional[MenuResult]]:
    """Validate the send-money answers present so far: currency, recipient, amount."""
    answers: dict = {}
    n = len(tokens)
    if n >= 5:
        currency = validate_currency(tokens[4], services.currencies)
        if not currency.ok:
            return answers, end(prompts.INVALID_CURRENCY, "format_error")
        answers["currency"] = currency.value
    if n >= 6:
        recipient = validate_phone(tokens[5])
        if not recipient.ok:
            return answers, end(prompts.INVALID_PHONE, "format_error")
        answers["recipient"] = recipient.value
    if n >= 7:
        amount = validate_amount(tokens[6])
        if not amount.ok:
            return answers, end(prompts.INVALID_AMOUNT, "format_error")
        answers["amount"] = amount.value
    return answers, None


# ---------------------------------------------------------------------------
# Entry + registration
# ---------------------------------------------------------------------------
def _entry_menu(tokens, ctx, services) -> MenuResult:
    return cont(prompts.entry_menu(services.service_name), "entry")


def _register_start(tokens, ctx, services) -> MenuResult:
    return cont(prompts.REGISTER_PHONE)


def _register_phone(tokens, ctx, services) -> MenuResult:
    phone = validate_phone(tokens[1])
    if not phone.ok:
        return end(prompts.INVALID_PHONE, "format_error")
    try:
        existing = services.directory.find_by_phone(phone.value)
    except DirectoryError as e:
        log(event="menu_directory_error", stage="register_phone", errorType=type(e).__name__)
        return end(prompts.GENERIC_ERROR, "directory_error")
    if existing is not None:
        return end(prompts.ALREADY_REGISTERED, "duplicate_registration")
    return cont(prompts.REGISTER_SET_PIN)


def _register_pin(tokens, ctx, services) -> MenuResult:
    phone = validate_phone(tokens[1])
    if not phone.ok:
        return end(prompts.INVALID_PHONE, "format_error")
    pin = validate_pin(tokens[2])
    if not pin.ok:
        return end(prompts.INVALID_PIN, "format_error")

    address = services.settlement.new_identity()
    account = new_account(
        phone.value,
        address,
        hash_pin(pin.value, services.pin_hash_rounds),
        services.currencies,
    )
    try:
        services.directory.insert(account)
    except DuplicateAccountError:
        return end(prompts.ALREADY_REGISTERED, "duplicate_registration")
    except DirectoryError as e:
        log(event="registration_insert_failed", errorType=type(e).__name__, phone=mask_phone(phone.value))
        return end(prompts.REGISTRATION_ERROR, "directory_error")

    if services.metrics is not None:
        services.metrics.increment_registration()

    funded = bool(services.provisioner.fund(address)) if services.provisioner is not None else False
    log(event="registration_completed", phone=mask_phone(phone.value), address=address, funded=funded)
    if funded:
        return end(prompts.registration_funded(address), "registered")
    return end(prompts.registration_unfunded(address), "registered_unfunded")


# ---------------------------------------------------------------------------
# Existing user
# ---------------------------------------------------------------------------
def _login_start(tokens, ctx, services) -> MenuResult:
    return cont(prompts.LOGIN_PHONE)


def _login_phone(tokens, ctx, services) -> MenuResult:
    phone = validate_phone(tokens[1])
    if not phone.ok:
        return end(prompts.INVALID_PHONE, "format_error")
    try:
        account = services.directory.find_by_phone(phone.value)
    except DirectoryError as e:
        log(event="menu_directory_error", stage="login_phone", errorType=type(e).__name__)
        return end(prompts.GENERIC_ERROR, "directory_error")
    if account is None:
        return end(prompts.NO_ACCOUNT_FOR_PHONE, "not_found")
    return cont(prompts.LOGIN_ENTER_PIN)


def _login_pin(tokens, ctx, services) -> MenuResult:
    _, failure = _authenticate(tokens, services)
    if failure is not None:
        return failure
    return cont(prompts.MAIN_MENU, "authenticated")


def _main_menu(tokens, ctx, services) -> MenuResult:
    _, failure = _authenticate(tokens, services)
    if failure is not None:
        return failure
    option = last_token(tokens)
    if option == BRANCH_BALANCE:
        return cont(prompts.currency_menu(prompts.BALANCE_MENU_TITLE, services.currencies))
    if option == BRANCH_SEND:
        return cont(prompts.currency_menu(prompts.SEND_MENU_TITLE, services.currencies))
    if option == BRANCH_EXIT:
        return end(prompts.goodbye(services.service_name), "exit")
    return end(prompts.INVALID_MENU_OPTION, "invalid_option")


def _balance_currency(tokens, ctx, services) -> MenuResult:
    account, failure = _authenticate(tokens, services)
    if failure is not None:
        return failure
    currency = validate_currency(tokens[4], services.currencies)
    if not currency.ok:
        return end(prompts.INVALID_SELECTION, "format_error")

    if services.balance_source == "network":
        try:
            live = services.settlement.balance_of(account.settlement_address, currency.value)
        except SettlementError as e:
            log(event="balance_lookup_failed", errorType=type(e).__name__, currency=currency.value)
            return end(prompts.BALANCE_ERROR, "settlement_error")
        shown = format_amount(live) if live is not None else "0"
    else:
        shown = account.balance_raw(currency.value) or "0"
    return end(prompts.balance_result(currency.value, shown), "balance")


# ---------------------------------------------------------------------------
# Send money
# ---------------------------------------------------------------------------
def _transfer_currency(tokens, ctx, services) -> MenuResult:
    _, failure = _authenticate(tokens, services)
    if failure is not None:
        return failure
    _, failure = _transfer_answers(tokens, services)
    if failure is not None:
        return failure
    return cont(prompts.RECIPIENT_PHONE)


def _transfer_recipient(tokens, ctx, services) -> MenuResult:
    _, failure = _authenticate(tokens, services)
    if failure is not None:
        return failure
    _, failure = _transfer_answers(tokens, services)
    if failure is not None:
        return failure
    return cont(prompts.ENTER_AMOUNT)


def _transfer_amount(tokens, ctx, services) -> MenuResult:
    _, failure = _authenticate(tokens, services)
    if failure is not None:
        return failure
    answers, failure = _transfer_answers(tokens, services)
    if failure is not None:
        return failure
    return cont(prompts.confirm_transfer(format_amount(answers["amount"]), answers["recipient"]))


def _transfer_confirm(tokens, ctx, services) -> MenuResult:
    account, failure = _authenticate(tokens, services)
    if failure is not None:
        return failure
    answers, failure = _transfer_answers(tokens, services)
    if failure is not None:
        return failure

    confirmation = last_token(tokens)
    if confirmation == CONFIRM_NO:
        return end(prompts.TRANSFER_CANCELED, "declined")
    if confirmation != CONFIRM_YES:
        return end(prompts.INVALID_INPUT, "invalid_input")

    pending = PendingTransfer(
        source_phone=account.phone,
        destination_phone=answers["recipient"],
        currency=answers["currency"],
        amount=answers["amount"],
    )
    return _confirm_transfer(pending, ctx, services)


def _confirm_transfer(pending: PendingTransfer, ctx: SessionContext, services) -> MenuResult:
    guard = services.idempotency
    key = idempotency_key(ctx.session_id, ctx.text)
    if guard is not None:
        try:
            claim = guard.claim(key)
        except IdempotencyUnavailable as e:
            log(event="idempotency_unavailable", errorType=str(e))
            return end(prompts.PROCESSING_ERROR, "idempotency_unavailable")
        if not claim.acquired:
            log(event="transfer_replay", sessionId=ctx.session_id, inFlight=claim.in_flight)
            if claim.in_flight:
                return end(prompts.TRANSFER_IN_PROGRESS, "replay_in_flight")
            return end(claim.previous, "replay")

    try:
        result = services.transfers.execute(pending)
    except Exception:
        if guard is not None:
            guard.complete(key, prompts.UNEXPECTED_ERROR)
        raise

    screen = transfer_screen(result)
    if guard is not None:
        guard.complete(key, screen.text)
    return screen


def transfer_screen(result: TransferResult) -> MenuResult:
    status = result.status
    outcome = f"transfer_{status.value}"
    if status == TransferStatus.COMPLETED:
        shown = format_amount(parse_balance(result.new_balance))
        return end(prompts.transfer_success(result.currency, shown), outcome)
    if status == TransferStatus.RECONCILIATION_NEEDED:
        if result.reason == RECORD_WRITE_FAILED:
            return end(prompts.TRANSFER_NOT_RECORDED, outcome)
        return end(prompts.TRANSFER_BALANCE_NOT_UPDATED, outcome)
    if status == TransferStatus.SOURCE_NOT_FOUND:
        return end(prompts.SENDER_NOT_FOUND, outcome)
    if status == TransferStatus.DESTINATION_NOT_FOUND:
        return end(prompts.RECIPIENT_NOT_FOUND, outcome)
    if status == TransferStatus.INSUFFICIENT_BALANCE:
        return end(prompts.insufficient_balance(result.currency), outcome)
    if status == TransferStatus.CONFIGURATION_ERROR:
        return end(prompts.CONFIGURATION_ERROR, outcome)
    if status == TransferStatus.SETTLEMENT_UNKNOWN:
        return end(prompts.TRANSFER_UNKNOWN, outcome)
    if status == TransferStatus.BUSY:
        return end(prompts.TRANSFER_BUSY, outcome)
    if status == TransferStatus.DIRECTORY_UNAVAILABLE:
        return end(prompts.PROCESSING_ERROR, outcome)
    return end(prompts.TRANSFER_FAILED, outcome)


def _invalid(tokens, ctx, services) -> MenuResult:
    return end(prompts.INVALID_OPTION, "invalid_option")


HANDLERS: Dict[Step, Handler] = {
    Step.ENTRY_MENU: _entry_menu,
    Step.REGISTER_START: _register_start,
    Step.REGISTER_PHONE: _register_phone,
    Step.REGISTER_PIN: _register_pin,
    Step.LOGIN_START: _login_start,
    Step.LOGIN_PHONE: _login_phone,
    Step.LOGIN_PIN: _login_pin,
    Step.MAIN_MENU: _main_menu,
    Step.BALANCE_CURRENCY: _balance_currency,
    Step.TRANSFER_CURRENCY: _transfer_currency,
    Step.TRANSFER_RECIPIENT: _transfer_recipient,
    Step.TRANSFER_AMOUNT: _transfer_amount,
    Step.TRANSFER_CONFIRM: _transfer_confirm,
    Step.INVALID: _invalid,
}


def run_step(step: Step, tokens: Sequence[str], ctx: SessionContext, services) -> MenuResult:
    return HANDLERS[step](tokens, ctx, services)
