"""State/store layer.

This package is the single source of truth for how polled snapshots turn
into per-entity history intervals: change detection, the interval store and
run merging.
"""
