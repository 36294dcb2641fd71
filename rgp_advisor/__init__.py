"""
RGP Advisor.

Proposes a validator reference gas price from recent epoch cost data.
"""

__version__ = "0.1.0"
