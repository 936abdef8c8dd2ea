"""JSON-RPC transport for ledger nodes."""

from logwatch.rpc.client import HttpLedgerRPC

__all__ = ["HttpLedgerRPC"]
