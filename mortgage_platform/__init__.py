"""
Mortgage Platform
=================

Mortgage loan simulation: French-method schedules, grace periods, bank-policy
rules and regulatory indicators (NPV, IRR, TCEA).
"""

__version__ = "0.1.0"
