"""
Trust Score — Errors

Scoring prefers a stale-but-valid answer over an exception. Only a missing
subject is a hard failure, and only the flag operations raise for it;
score reads return None instead.
"""
from typing import Optional


class TrustScoreError(Exception):
    pass


class NotFound(TrustScoreError):
    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class FlagNotFound(NotFound):
    def __init__(self, flag_id: str):
        super().__init__("flag", flag_id)


class DataSourceUnavailable(TrustScoreError):
    """An optional source could not be read. Collector substitutes empties."""
    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        super().__init__(f"Data source unavailable: {source}" + (f" ({reason})" if reason else ""))


class PersistenceFailure(TrustScoreError):
    """
    A write to the durable store failed. When the write was a computed
    score, `record` still holds the valid result.
    """
    def __init__(self, message: str, record: Optional[object] = None):
        self.record = record
        super().__init__(message)
