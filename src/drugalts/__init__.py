"""
drugalts - Alternative medicine finder.

This package ranks alternatives for a target medicine from a catalog,
using ingredient overlap, category, manufacturer diversity and price,
and widens its candidate search in tiers when direct matches are scarce.
"""

__version__ = "0.1.0"
