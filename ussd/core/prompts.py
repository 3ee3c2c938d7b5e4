# Screen texts. These strings are part of the contract with the gateway's users;
# the CON/END prefix is added by the responder.

from typing import Sequence

PHONE_FORMAT_HINT = "(in format +1234567890)"


def entry_menu(service_name: str) -> str:
    return f"Welcome to {service_name}\n1. Register\n2. Existing User"


def currency_menu(title: str, currencies: Sequence[str]) -> str:
    lines = [title]
    for i, code in enumerate(currencies, start=1):
        lines.append(f"{i}. {code}")
    return "\n".join(lines)


def goodbye(service_name: str) -> str:
    return f"Thank you for using {service_name}. Goodbye!"


# Registration
REGISTER_PHONE = f"Enter your phone number {PHONE_FORMAT_HINT}:"
REGISTER_SET_PIN = "Set a 4 to 6-digit PIN for your account:"
ALREADY_REGISTERED = "User already registered. Please use the existing user option."
REGISTRATION_ERROR = "An error occurred during registration. Please try again later."


def registration_funded(public_key: str) -> str:
    return (
        "Registration successful!\n"
        f"Your Stellar Public Key: {public_key}\n"
        "Your account has been funded with XLM on Testnet. You can now use the service."
    )


def registration_unfunded(public_key: str) -> str:
    return (
        "Registration successful!\n"
        f"Your Stellar Public Key: {public_key}\n"
        "However, we couldn't fund your account automatically. "
        "Please fund it manually using the Stellar Laboratory."
    )


# Existing user
LOGIN_PHONE = f"Enter your registered phone number {PHONE_FORMAT_HINT}:"
LOGIN_ENTER_PIN = "Enter your PIN:"
NO_ACCOUNT_FOR_PHONE = "No account found for this phone number. Please register first."
NO_ACCOUNT = "No account found. Please register first."
INCORRECT_PIN = "Incorrect PIN. Please try again."
MAIN_MENU = "Welcome back!\n1. Check Balance\n2. Send Money\n3. Exit"

# Balance
BALANCE_MENU_TITLE = "Select balance to view:"
INVALID_SELECTION = "Invalid selection. Please try again."
BALANCE_ERROR = "An error occurred while fetching your balance."


def balance_result(currency: str, amount: str) -> str:
    return f"Your {currency} balance is {amount}"


# Send money
SEND_MENU_TITLE = "Select currency to send:"
INVALID_CURRENCY = "Invalid currency selection. Please try again."
RECIPIENT_PHONE = f"Enter recipient's phone number {PHONE_FORMAT_HINT}:"
ENTER_AMOUNT = "Enter amount to send:"
INVALID_AMOUNT = "Invalid amount entered. Please try again."
TRANSFER_CANCELED = "Transaction canceled."
INVALID_INPUT = "Invalid input."


def confirm_transfer(amount: str, recipient: str) -> str:
    return f"Confirm sending {amount} to {recipient}?\n1. Yes\n2. No"


# Transfer outcomes
def transfer_success(currency: str, new_balance: str) -> str:
    return f"Transaction successful! Your new {currency} balance is {new_balance}"


TRANSFER_BALANCE_NOT_UPDATED = "Transaction successful, but failed to update your balance."
TRANSFER_NOT_RECORDED = "Transaction successful, but failed to record it."
SENDER_NOT_FOUND = "Sender account not found."
RECIPIENT_NOT_FOUND = "Recipient account not found."


def insufficient_balance(currency: str) -> str:
    return f"Insufficient {currency} balance."


CONFIGURATION_ERROR = "Configuration error. Please contact support."
TRANSFER_FAILED = "Transaction failed. Please try again."
TRANSFER_UNKNOWN = "Transaction status unknown. Please check your balance before trying again."
TRANSFER_IN_PROGRESS = "Your transaction is still being processed. Please check your balance shortly."
TRANSFER_BUSY = "Another transaction is in progress. Please try again shortly."
PROCESSING_ERROR = "An error occurred while processing your request."

# Shared
INVALID_PHONE = "Invalid phone number format. Please try again."
INVALID_PIN = "Invalid PIN format. Please enter a 4 to 6-digit PIN."
INVALID_OPTION = "Invalid option."
INVALID_MENU_OPTION = "Invalid option. Please try again."
GENERIC_ERROR = "An error occurred. Please try again later."
UNEXPECTED_ERROR = "An unexpected error occurred. Please try again later."
