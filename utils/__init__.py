"""
Utility helpers: query serialization and tabular data processing.
"""
