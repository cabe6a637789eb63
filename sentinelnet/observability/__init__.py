"""
Observability for SentinelNet: logging, metrics and HTTP endpoints.
"""
