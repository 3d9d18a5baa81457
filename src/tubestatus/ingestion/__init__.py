"""Ingestion layer.

This package contains the loop that pulls snapshots from the status feed
and hands them to the state/store layer.
"""

__all__: list[str] = []
