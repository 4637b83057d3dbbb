"""
FreshCart Backend

Grocery ordering API with a conversational assistant that drives the cart
through the same tools the voice agent uses.
"""

__version__ = "1.0.0"
