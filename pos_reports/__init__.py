"""
POS Reports

Report aggregation backend for a point-of-sale / inventory back office.
"""

__version__ = "1.0.0"
