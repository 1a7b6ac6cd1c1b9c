"""
Change detection between the server-known allocations and a submission.

The save itself is always a bulk replace of the full list. The change
set only describes what that replace will do, for auditing and for
telling the user whether there is anything to save.
"""

from collections.abc import Iterable

from goal_allocations.models.allocation import Allocation, AllocationChangeSet


def diff_allocations(
    baseline: Iterable[Allocation],
    submitted: Iterable[Allocation],
    tolerance: float = 1e-9,
) -> AllocationChangeSet:
    """
    Compare two allocation lists by (account_id, goal_id).

    upserts: pairs that are new or whose percent changed.
    removals: pairs present in the baseline but absent from the
    submission (the receiving side reads absence as 0%).
    """
    before = {a.key: a for a in baseline if a.percent != 0}
    after = {a.key: a for a in submitted if a.percent != 0}

    upserts = [
        allocation
        for key, allocation in after.items()
        if key not in before or abs(before[key].percent - allocation.percent) > tolerance
    ]
    removals = [allocation for key, allocation in before.items() if key not in after]

    return AllocationChangeSet(upserts=upserts, removals=removals)
