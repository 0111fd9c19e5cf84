from __future__ import annotations

"""
Operator identity core: session resolution and expiry-aware ban evaluation.

Only SessionResolver builds Session values; everything else reads them from
the SyncScheduler snapshot.
"""
