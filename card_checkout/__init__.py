"""
Card checkout: single-product purchases paid by card through an external
payment gateway.
"""

__version__ = "0.1.0"
