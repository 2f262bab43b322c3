from .governor import QuotaGovernor
from .ledger import InMemoryLedgerStore, JsonLedgerStore, QuotaLedger

__all__ = ["QuotaGovernor", "InMemoryLedgerStore", "JsonLedgerStore", "QuotaLedger"]
