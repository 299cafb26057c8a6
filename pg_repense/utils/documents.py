# pg_repense/utils/documents.py - Brazilian document, phone and name helpers
import re
from datetime import date, datetime
from typing import Optional

NAME_PARTICLES = {"de", "da", "do", "dos", "das", "e"}


def only_digits(value: Optional[str]) -> str:
    return re.sub(r"\D", "", value or "")


def validate_cpf(value: str) -> bool:
    """Check length and both verification digits of a CPF"""
    cpf = only_digits(value)
    if len(cpf) != 11 or cpf == cpf[0] * 11:
        return False

    for position in (9, 10):
        total = sum(int(cpf[i]) * (position + 1 - i) for i in range(position))
        digit = (total * 10) % 11
        if digit == 10:
            digit = 0
        if digit != int(cpf[position]):
            return False
    return True


def normalize_phone(value: str) -> str:
    return only_digits(value)


def validate_phone(value: str) -> bool:
    """Mobile numbers with area code: 11 digits"""
    return len(only_digits(value)) == 11


def normalize_name(value: str) -> str:
    """
    Title-case a Portuguese name keeping particles lowercase.

    "MARIA DA SILVA" -> "Maria da Silva"
    """
    words = (value or "").split()
    normalized = []
    for word in words:
        lower = word.lower()
        if lower in NAME_PARTICLES:
            normalized.append(lower)
        else:
            normalized.append(lower[:1].upper() + lower[1:])
    return " ".join(normalized)


def has_full_name(value: str) -> bool:
    return len((value or "").split()) >= 2


def parse_birth_date(value) -> Optional[date]:
    """Accepts a date, ISO yyyy-mm-dd, or Brazilian dd-mm-yyyy / dd/mm/yyyy"""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value

    text = str(value).strip().replace("/", "-")
    for fmt in ("%Y-%m-%d", "%d-%m-%Y"):
        try:
            parsed = datetime.strptime(text, fmt).date()
        except ValueError:
            continue
        if 1900 <= parsed.year <= 2100:
            return parsed
    raise ValueError("Data de nascimento deve estar no formato dd-MM-yyyy (ex: 25-12-1990)")
