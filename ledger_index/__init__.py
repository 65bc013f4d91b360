"""
Ledger Index
============

Parses plain-text double-entry journals (hledger / ledger format) into a
read-only index of accounts, payees, tags, commodities, aliases, commodity
display formats, transaction templates and usage counts, for use by
completion and suggestion features.

Quick start
-----------
>>> from ledger_index import LedgerParser, ProjectCache
>>> parser = LedgerParser()
>>> index = parser.parse_file("main.journal")
>>> for account, uses in index.accounts_by_usage()[:5]:
...     print(account, uses)
>>> workspace = parser.parse_workspace("~/finance", cache=ProjectCache())
"""

from .cache.project_cache import CacheStats, ProjectCache
from .config import ParserConfig, select_parse_mode
from .errors import FileSizeExceededError, InvalidIdentifierError, LedgerIndexError
from .identifiers import AccountName, CommodityCode, PayeeName, TagName, TagValue
from .index_builder import IndexBuilder
from .models import CommodityFormat, LedgerIndex, NumberFormat, TransactionTemplate
from .pipeline.ledger_parser import LedgerParser
from .services.number_format import NumberFormatService

__version__ = "0.1.0"
__all__ = [
    "AccountName",
    "CacheStats",
    "CommodityCode",
    "CommodityFormat",
    "FileSizeExceededError",
    "IndexBuilder",
    "InvalidIdentifierError",
    "LedgerIndex",
    "LedgerIndexError",
    "LedgerParser",
    "NumberFormat",
    "NumberFormatService",
    "ParserConfig",
    "PayeeName",
    "ProjectCache",
    "TagName",
    "TagValue",
    "TransactionTemplate",
    "select_parse_mode",
]
