"""SMS dispatch core.

Multi-provider SMS delivery with country-based routing and a single
fallback hop.
"""

__version__ = "0.1.0"
