"""
Account Management Module

Manages per-user budget accounts and their embedded transaction lists.
Each account is a single document keyed by its user; a transaction only
exists inside the account that owns it. Transactions are identified by an
MD5 digest of their content, which doubles as the duplicate-submission guard.
"""

from datetime import datetime, timezone
from decimal import Decimal
from dataclasses import dataclass, field, asdict
from contextlib import contextmanager
from typing import Any, Dict, List, Optional
import hashlib
import logging
import math
import re

from .storage import StorageInterface, StorageRecord
from .errors import (
    LedgerError, InvalidInputError, NotFoundError, ConflictError,
    InternalError, DuplicateRecordError
)
from .logging_config import log_action


logger = logging.getLogger(__name__)

# Leading decimal literal of a string, the way parseFloat-style parsing reads it
_NUMBER_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_number(value: Any) -> Optional[float]:
    """
    Coerce a request value to a float.

    Numbers are taken as-is, strings are read up to the end of their leading
    decimal literal ("12.5 EUR" -> 12.5). Returns None for anything that is
    not a finite number, including booleans.
    """
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            match = _NUMBER_PREFIX.match(value)
            if not match:
                return None
            number = float(match.group(1))
        else:
            return None
    except OverflowError:
        return None

    if math.isnan(number) or math.isinf(number):
        return None
    return number


def format_number(value: float) -> str:
    """
    Shortest round-trip rendering of a float with plain decimal notation for
    1e-7 <= |value| < 1e21 and unpadded exponents ("1e-7", "1.5e+22") outside
    that range, as a JavaScript client renders numbers.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))

    sign, digits, exponent = Decimal(repr(value)).as_tuple()
    digits = list(digits)
    while len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exponent += 1

    text = "".join(str(d) for d in digits)
    k = len(digits)
    # value == 0.<text> * 10 ** point
    point = exponent + k

    if k <= point <= 21:
        rendered = text + "0" * (point - k)
    elif 0 < point <= 21:
        rendered = text[:point] + "." + text[point:]
    elif -6 < point <= 0:
        rendered = "0." + "0" * -point + text
    else:
        power = point - 1
        mantissa = text if k == 1 else text[0] + "." + text[1:]
        rendered = f"{mantissa}e{'+' if power >= 0 else '-'}{abs(power)}"

    return ("-" if sign else "") + rendered


def concat_string(value: Any) -> str:
    """Render a value the way string concatenation in a JSON client renders it"""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int) and abs(value) >= 10 ** 21:
        value = float(value)
    if isinstance(value, float):
        return format_number(value)
    return str(value)


def derive_transaction_id(date: Any, obj: Any, amount: Any) -> str:
    """MD5 hex digest of date + object + amount, amount as originally submitted"""
    content = concat_string(date) + concat_string(obj) + concat_string(amount)
    return hashlib.md5(content.encode("utf-8")).hexdigest()


@dataclass
class Transaction:
    """A dated, labeled, signed entry on an account"""
    id: str
    date: str
    object: str
    amount: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        return cls(
            id=data['id'],
            date=data['date'],
            object=data['object'],
            amount=float(data['amount'])
        )


@dataclass
class Account(StorageRecord):
    """
    A user's budget: currency label, running balance and the ordered list of
    transactions recorded against it
    """
    user: str
    currency: str
    description: str
    balance: float = 0.0
    transactions: List[Transaction] = field(default_factory=list)

    def find_transaction(self, transaction_id: str) -> Optional[int]:
        """Index of the transaction with the given id, or None"""
        for index, transaction in enumerate(self.transactions):
            if transaction.id == transaction_id:
                return index
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        data = dict(data)
        data['transactions'] = [
            Transaction.from_dict(item) for item in data.get('transactions', [])
        ]
        data['balance'] = float(data.get('balance', 0))
        return super().from_dict(data)


class AccountLedger:
    """
    Account and transaction operations against the document store.

    Every operation reads and writes a single account document. There is no
    version check between a read and the following save, so two concurrent
    writers on the same account can lose an update.
    """

    def __init__(self, storage: StorageInterface, reverse_balance_on_remove: bool = False):
        self.storage = storage
        self.reverse_balance_on_remove = reverse_balance_on_remove
        self.accounts_table = "accounts"

    @contextmanager
    def _store_errors(self, action: str):
        """Log unexpected store failures and report them as InternalError"""
        try:
            yield
        except LedgerError:
            raise
        except Exception as e:
            logger.exception("Error %s", action)
            raise InternalError() from e

    def _load_account(self, user: str) -> Account:
        account_dict = self.storage.load(self.accounts_table, user)
        if not account_dict:
            raise NotFoundError("User does not exist")
        return Account.from_dict(account_dict)

    def _save_account(self, account: Account) -> None:
        account.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.accounts_table, account.user, account.to_dict())

    def create_account(
        self,
        user: Any,
        currency: Any,
        description: Any = None,
        balance: Any = None
    ) -> Account:
        """
        Create a new account

        Args:
            user: Unique account owner name
            currency: Free-form currency label
            description: Defaults to "<user>'s budget" when empty
            balance: Initial balance, number or numeric string, defaults to 0

        Returns:
            Created Account, including its store-assigned id
        """
        if not user or not currency:
            raise InvalidInputError("Missing parameters")
        if not isinstance(user, str) or not isinstance(currency, str):
            raise InvalidInputError("User and currency must be strings")
        if description and not isinstance(description, str):
            raise InvalidInputError("Description must be a string")

        with self._store_errors("creating account"):
            if self.storage.exists(self.accounts_table, user):
                raise ConflictError("User already exists")

        initial_balance = 0.0
        if balance:
            initial_balance = parse_number(balance)
            if initial_balance is None:
                raise InvalidInputError("Balance must be a number")

        now = datetime.now(timezone.utc)
        document = {
            "user": user,
            "currency": currency,
            "description": description or f"{user}'s budget",
            "balance": initial_balance,
            "transactions": [],
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        }

        with self._store_errors("creating account"):
            try:
                stored = self.storage.insert(self.accounts_table, user, document)
            except DuplicateRecordError:
                raise ConflictError("User already exists")

        account = Account.from_dict(stored)
        log_action(logger, "info", "Account created", user_id=user,
                   action="account_created", resource=account.id,
                   extra={"currency": currency, "balance": initial_balance})
        return account

    def get_account(self, user: str) -> Account:
        """Get an account with its transactions in stored order"""
        with self._store_errors("retrieving account"):
            return self._load_account(user)

    def delete_account(self, user: str) -> None:
        """Delete an account together with its embedded transactions"""
        with self._store_errors("deleting account"):
            if not self.storage.delete(self.accounts_table, user):
                raise NotFoundError("User does not exist")

        log_action(logger, "info", "Account deleted", user_id=user,
                   action="account_deleted")

    def add_transaction(self, user: str, date: Any, obj: Any, amount: Any) -> Transaction:
        """
        Append a transaction to an account and add its amount to the balance.

        A falsy amount, zero included, counts as missing. The id is derived
        from the submitted values, so resubmitting the same date, object and
        amount is rejected as a duplicate.
        """
        with self._store_errors("adding transaction"):
            account = self._load_account(user)

        if not date or not obj or not amount:
            raise InvalidInputError("Missing parameters")
        if not isinstance(date, str) or not isinstance(obj, str):
            raise InvalidInputError("Date and object must be strings")

        value = parse_number(amount)
        if value is None:
            raise InvalidInputError("Amount must be a number")

        transaction_id = derive_transaction_id(date, obj, amount)
        if account.find_transaction(transaction_id) is not None:
            raise ConflictError("Transaction already exists")

        transaction = Transaction(id=transaction_id, date=date, object=obj, amount=value)
        account.transactions.append(transaction)
        account.balance += transaction.amount

        with self._store_errors("adding transaction"):
            self._save_account(account)

        log_action(logger, "info", "Transaction added", user_id=user,
                   action="transaction_added", resource=transaction_id,
                   extra={"amount": value, "balance": account.balance})
        return transaction

    def remove_transaction(self, user: str, transaction_id: str) -> None:
        """
        Remove a transaction from an account.

        The balance keeps the removed amount unless the ledger was built with
        reverse_balance_on_remove.
        """
        with self._store_errors("deleting transaction"):
            account = self._load_account(user)

            index = account.find_transaction(transaction_id)
            if index is None:
                raise NotFoundError("Transaction does not exist")

            removed = account.transactions.pop(index)
            if self.reverse_balance_on_remove:
                account.balance -= removed.amount

            self._save_account(account)

        log_action(logger, "info", "Transaction removed", user_id=user,
                   action="transaction_removed", resource=transaction_id,
                   extra={"balance": account.balance})
