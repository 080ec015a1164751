"""Allocation engine.

Pure functions over phase/feature snapshots and a rate catalog. Nothing here holds
state between calls or raises for out-of-range figures.
"""
