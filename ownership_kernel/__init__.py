"""
Ownership Kernel

Partial ownership of inventory lots bought on supplier credit:
- Proportional payment allocation across a bucket's open lots
- Oldest-first depletion of owned stock
- Pre-sale validation with payment-status warnings
- Optimistic versioning and row locks for same-bucket serialization
"""

__version__ = "0.1.0"
