import re

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_CNPJ_W1 = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
_CNPJ_W2 = [6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]


def digits(value) -> str:
    return re.sub(r"\D", "", str(value or ""))


def is_valid_email(value) -> bool:
    return bool(value) and bool(_EMAIL_RE.match(str(value).strip()))


def _check_digit(nums, weights) -> int:
    r = sum(n * w for n, w in zip(nums, weights)) % 11
    return 0 if r < 2 else 11 - r


def is_valid_cpf(value) -> bool:
    d = digits(value)
    if len(d) != 11 or d == d[0] * 11:
        return False
    nums = [int(c) for c in d]
    if _check_digit(nums[:9], range(10, 1, -1)) != nums[9]:
        return False
    return _check_digit(nums[:10], range(11, 1, -1)) == nums[10]


def is_valid_cnpj(value) -> bool:
    d = digits(value)
    if len(d) != 14 or d == d[0] * 14:
        return False
    nums = [int(c) for c in d]
    if _check_digit(nums[:12], _CNPJ_W1) != nums[12]:
        return False
    return _check_digit(nums[:13], _CNPJ_W2) == nums[13]
