"""
Service wiring and request dependencies
"""

from fastapi import Request

from ..accounts import AccountLedger
from ..config import LedgerConfig
from ..storage import StorageInterface


class LedgerSystem:
    """Ledger service with its storage backend, shared for the process lifetime"""

    def __init__(self, storage: StorageInterface, config: LedgerConfig):
        self.storage = storage
        self.ledger = AccountLedger(
            storage,
            reverse_balance_on_remove=config.reverse_balance_on_remove
        )

    def close(self) -> None:
        self.storage.close()


# Dependency to get the account ledger
def get_ledger(request: Request) -> AccountLedger:
    return request.app.state.system.ledger
