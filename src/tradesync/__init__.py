"""Incremental trade-history synchronizer with wallet intersection analysis."""
