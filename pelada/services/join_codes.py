"""Short public codes used to find and join a waiting match."""
import secrets
import string

CODE_LENGTH = 6
CODE_ALPHABET = string.ascii_uppercase + string.digits


def normalize_code(raw_value):
    """Upper-case and strip user input; return '' when it cannot be a code."""
    code = str(raw_value or '').strip().upper()
    if len(code) != CODE_LENGTH:
        return ''
    if any(char not in CODE_ALPHABET for char in code):
        return ''
    return code


def random_code():
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def generate_code(is_taken):
    """Draw codes until ``is_taken(code)`` reports a free one.

    The check runs against the store at call time only; callers still need the
    unique index on ``football_match.code`` and a retry on insert.
    """
    code = random_code()
    while is_taken(code):
        code = random_code()
    return code
