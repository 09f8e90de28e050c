"""
Utility modules for the data toolkits.

This package contains reusable pieces that support the source adapters:
- DataHTTPClient: HTTP/JSON-RPC client with per-call retry policies
- retry_with_backoff / RetryPolicy: backoff retrier and its parameters
- collect_all_pages: sequential paginated collector
- ResponseBuilder / SourceResult: uniform result envelopes
- DataValidator: strict upstream schemas
- StatisticalAnalyzer: holder aggregation and distribution statistics
"""

from .data_validator import DataValidator
from .http_client import DataHTTPClient, HTTPClientError, JsonRpcError
from .pagination import AccountRecord, CollectionResult, CollectorConfig, PageResult, collect_all_pages
from .response_builder import ResponseBuilder, SourceResult
from .retry import RetryPolicy, retry_with_backoff
from .statistics import HolderAggregate, StatisticalAnalyzer

__all__ = [
    'DataValidator',
    'DataHTTPClient',
    'HTTPClientError',
    'JsonRpcError',
    'AccountRecord',
    'CollectionResult',
    'CollectorConfig',
    'PageResult',
    'collect_all_pages',
    'ResponseBuilder',
    'SourceResult',
    'RetryPolicy',
    'retry_with_backoff',
    'HolderAggregate',
    'StatisticalAnalyzer',
]
