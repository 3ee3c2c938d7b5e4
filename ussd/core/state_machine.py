"""
Menu steps derived from the decoded answer path.

Nothing is stored between requests: the step is recomputed every time from the
flow selector (first answer), the number of answers, and for the signed-in
ladder the main-menu branch (fourth answer).
"""
from enum import Enum
from typing import Sequence

FLOW_REGISTER = "1"
FLOW_EXISTING = "2"

BRANCH_BALANCE = "1"
BRANCH_SEND = "2"
BRANCH_EXIT = "3"


class Step(str, Enum):
    # Empty path: welcome screen
    ENTRY_MENU = "ENTRY_MENU"

    # Registration ladder; the newest answer belongs to the named step
    REGISTER_START = "REGISTER_START"        # ["1"]
    REGISTER_PHONE = "REGISTER_PHONE"        # ["1", phone]
    REGISTER_PIN = "REGISTER_PIN"            # ["1", phone, pin]

    # Existing-user ladder
    LOGIN_START = "LOGIN_START"              # ["2"]
    LOGIN_PHONE = "LOGIN_PHONE"              # ["2", phone]
    LOGIN_PIN = "LOGIN_PIN"                  # ["2", phone, pin]
    MAIN_MENU = "MAIN_MENU"                  # ["2", phone, pin, option]
    BALANCE_CURRENCY = "BALANCE_CURRENCY"    # [..., "1", currency]
    TRANSFER_CURRENCY = "TRANSFER_CURRENCY"  # [..., "2", currency]
    TRANSFER_RECIPIENT = "TRANSFER_RECIPIENT"
    TRANSFER_AMOUNT = "TRANSFER_AMOUNT"
    TRANSFER_CONFIRM = "TRANSFER_CONFIRM"

    # Unknown selector or past the end of a ladder
    INVALID = "INVALID"


REGISTER_LADDER = {
    1: Step.REGISTER_START,
    2: Step.REGISTER_PHONE,
    3: Step.REGISTER_PIN,
}

LOGIN_LADDER = {
    1: Step.LOGIN_START,
    2: Step.LOGIN_PHONE,
    3: Step.LOGIN_PIN,
    4: Step.MAIN_MENU,
}

BALANCE_LADDER = {
    5: Step.BALANCE_CURRENCY,
}

SEND_LADDER = {
    5: Step.TRANSFER_CURRENCY,
    6: Step.TRANSFER_RECIPIENT,
    7: Step.TRANSFER_AMOUNT,
    8: Step.TRANSFER_CONFIRM,
}

BRANCH_LADDERS = {
    BRANCH_BALANCE: BALANCE_LADDER,
    BRANCH_SEND: SEND_LADDER,
}


def resolve_step(tokens: Sequence[str]) -> Step:
    """Total mapping from an answer path to exactly one step."""
    n = len(tokens)
    if n == 0:
        return Step.ENTRY_MENU

    selector = tokens[0]
    if selector == FLOW_REGISTER:
        return REGISTER_LADDER.get(n, Step.INVALID)

    if selector == FLOW_EXISTING:
        if n in LOGIN_LADDER:
            return LOGIN_LADDER[n]
        ladder = BRANCH_LADDERS.get(tokens[3], {})
        return ladder.get(n, Step.INVALID)

    return Step.INVALID
