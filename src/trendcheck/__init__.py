"""
Recursive (fixed end year, growing window) trend comparison of an observed
series against a model ensemble.
"""

__version__ = "0.1.0"
