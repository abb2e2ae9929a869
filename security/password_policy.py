from typing import List, Tuple

from flask import current_app

_DEFAULT_MIN_LEN = 8
_MAX_LEN = 128


def _min_len() -> int:
    try:
        return int(current_app.config.get("PASSWORD_MIN_LEN", _DEFAULT_MIN_LEN))
    except RuntimeError:
        return _DEFAULT_MIN_LEN


def validate_password(pw) -> Tuple[bool, List[str]]:
    if not isinstance(pw, str):
        return False, ["Passwort muss eine Zeichenkette sein"]

    errors: List[str] = []
    min_len = _min_len()
    if len(pw.strip()) < min_len:
        errors.append(f"Neues Passwort muss mindestens {min_len} Zeichen haben")
    if len(pw) > _MAX_LEN:
        errors.append(f"Passwort darf maximal {_MAX_LEN} Zeichen haben")
    return (len(errors) == 0), errors
