"""
cairn - Static site builder with a live rebuild-and-serve loop.
"""

__version__ = "0.1.0"
