"""
Workflow Kernel - multi-stage approval engine

Work items move through an ordered sequence of review stages with:
- Validated, immutable workflow definitions
- A single canonical transition state machine
- Workload-aware reviewer assignment
- An append-only review ledger with timeline and summary
- Read-only per-user visibility projections
"""

__version__ = "0.1.0"
