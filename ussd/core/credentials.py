"""
PIN storage.

PINs are kept as bcrypt hashes. Records written before hashing was introduced
hold the bare PIN; those still verify, with a constant-time comparison.
"""
import hmac

import bcrypt

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def hash_pin(pin: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt(rounds=int(rounds))).decode("utf-8")


def verify_pin(pin: str, stored: str) -> bool:
    if not stored:
        return False
    if stored.startswith(BCRYPT_PREFIXES):
        try:
            return bcrypt.checkpw(pin.encode("utf-8"), stored.encode("utf-8"))
        except ValueError:
            return False
    # legacy plain value
    return hmac.compare_digest(pin.encode("utf-8"), stored.encode("utf-8"))
