"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a signed Decimal.

    Handles both decimal conventions found in bank exports:
    - "1234.56", "1,234.56" (dot decimal, comma thousands)
    - "1234,56", "1.234,56" (comma decimal, dot thousands)
    - "R$ 1.234,56", "$123.45" (currency symbols are ignored)
    - "-89,90" (leading minus for outflows)
    - "(123.45)" (negative in parentheses)

    When both separators are present, the one appearing last is the decimal
    separator. A single comma on its own is treated as a decimal comma; a
    repeated separator is treated as a thousands separator.

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    cleaned = amount_str.strip()

    is_negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        is_negative = True
        cleaned = cleaned[1:-1].strip()

    if cleaned.startswith("-"):
        is_negative = not is_negative
        cleaned = cleaned[1:]

    # Drop currency symbols, letters and spaces
    cleaned = re.sub(r"[^\d.,-]", "", cleaned)
    if cleaned.startswith("-"):
        # "R$ -10,00" style: the sign came after the currency symbol
        is_negative = not is_negative
        cleaned = cleaned[1:]

    if not cleaned or not re.search(r"\d", cleaned):
        raise ValueError(f"Could not parse amount '{amount_str}'")

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        if cleaned.count(",") > 1:
            cleaned = cleaned.replace(",", "")
        else:
            cleaned = cleaned.replace(",", ".")
    elif cleaned.count(".") > 1:
        cleaned = cleaned.replace(".", "")

    try:
        amount = Decimal(cleaned)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}': {e}")

    return -amount if is_negative else amount
