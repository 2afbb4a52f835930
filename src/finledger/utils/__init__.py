"""Utility functions for finledger."""

from finledger.utils.date_parser import parse_date, parse_statement_date, parse_month
from finledger.utils.amount_parser import parse_amount
from finledger.utils.account_resolver import resolve_account

__all__ = ["parse_date", "parse_statement_date", "parse_month", "parse_amount", "resolve_account"]
