"""
Procurement Kernel

A staged approval workflow for inventory movements and catalog changes:
- Manager / controller approval topologies
- Inventory deltas committed only at final approval
- Deduplicated, human-readable audit notes
- Signed, expiring action tokens for out-of-band approvals
"""

__version__ = "0.1.0"
