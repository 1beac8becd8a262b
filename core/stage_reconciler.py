"""
Stage Reconciler — Picks one date per stage from an item's status-change history.

Work items move backward as well as forward (sent back for rework, reopened),
so a stage can collect several dates and a later stage can hold a date that is
earlier than one in a previous stage. Reported dates must still read as a
forward-moving timeline.

For each stage, in workflow order:

  best   = smallest date in the stage that is >= previous_max
  max    = largest date in the stage (no filter)
  previous_max = max(previous_max, max)

A stage with no qualifying date resolves to "". Dates are ISO day strings, so
string comparison is date comparison.

Example, stages [Open, Active, Done]:

    Open   ["2024-01-01"]                -> "2024-01-01"   previous_max 01-01
    Active ["2024-01-05", "2024-01-03"]  -> "2024-01-03"   previous_max 01-05
    Done   ["2024-01-04"]                -> ""             (01-04 < 01-05)
"""

from typing import List, Sequence


def reconcile_stage_dates(events: Sequence[Sequence[str]]) -> List[str]:
    """Resolve one date per stage.

    Args:
        events: Observed dates per stage, in stage order. Order within a
            stage does not matter.

    Returns:
        One date (or "") per stage.
    """
    resolved = []
    previous_max = ""
    for dates in events:
        observed = [d for d in dates if d]
        qualifying = [d for d in observed if d >= previous_max]
        resolved.append(min(qualifying) if qualifying else "")

        stage_max = max(observed, default="")
        if stage_max > previous_max:
            previous_max = stage_max
    return resolved

