"""
Newsletter Export

Turns a newsletter publication's posts into offline archives (plain text and EPUB).
Provides post discovery, content extraction, footnote reconciliation and e-book packaging.
"""

__version__ = "1.0.0"
