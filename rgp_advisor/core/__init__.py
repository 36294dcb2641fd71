"""
Core modules for RGP Advisor.

This package contains the decision engine: epoch metric extraction,
summary aggregation, jitter selection and the RGP calculation.
"""
