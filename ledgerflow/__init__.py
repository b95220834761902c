"""
LedgerFlow - purchase approval and inventory cost ledger
"""
__version__ = "1.0.0"
