from __future__ import annotations

import bcrypt
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, VerifyMismatchError

_argon2_hasher = PasswordHasher()


def hash_pin(pin: str, scheme: str = "argon2") -> str:
    if not pin:
        raise ValueError("PIN must not be empty")

    if scheme == "argon2":
        return _argon2_hasher.hash(pin)
    if scheme == "bcrypt":
        return bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
    raise ValueError(f"Unsupported scheme: {scheme}")


def is_hashed(value: str) -> bool:
    return value.startswith(("$argon2", "$2a$", "$2b$", "$2y$"))


def verify_pin(pin: str, hashed: str) -> bool:
    if hashed.startswith("$argon2"):
        try:
            return _argon2_hasher.verify(hashed, pin)
        except (VerifyMismatchError, VerificationError):
            return False
    if hashed.startswith(("$2a$", "$2b$", "$2y$")):
        return bcrypt.checkpw(pin.encode("utf-8"), hashed.encode("utf-8"))
    raise ValueError("Unknown PIN hash format")
