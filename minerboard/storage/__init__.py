from ._schema import SCHEMA_VERSION, SCHEMA_SQL
from .snapshots import SnapshotRepo
from .ledger import LedgerRepo
from .manager import StorageManager

__all__ = [
    "SCHEMA_VERSION",
    "SCHEMA_SQL",
    "SnapshotRepo",
    "LedgerRepo",
    "StorageManager",
]
