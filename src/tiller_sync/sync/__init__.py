"""Pull/push sync between the local datastore and the Tiller sheet.

Architecture
------------
Sync is deliberately one-directional per operation. ``pull`` replaces
the local datastore with the sheet; ``push`` replaces the sheet with the
local datastore. Safety comes from three checks around push:

- a **conflict check** that compares the sheet with the snapshot saved by
  the last pull and refuses on any drift unless forced;
- a **formula check** that refuses to write formulas back when rows were
  deleted locally, since recorded positions would then be off;
- a **verification** pass that re-reads row counts after writing.

Modules:

- ``engine``    -- ``SyncEngine``: pull, push and status.
- ``conflict``  -- ``detect``: remote drift since the last pull.
- ``formulas``  -- ``has_gap``, ``plan_formulas``: formula restore rules.
- ``lock``      -- ``SyncLock``: one sync per datastore at a time.
- ``models``    -- phases, reports and plans.
- ``reporter``  -- human-readable and JSON report formatting.

Usage example
-------------
::

    from tiller_sync.config import load_config
    from tiller_sync.remote import TillerLedger, create_sheet
    from tiller_sync.sync import SyncEngine, format_pull_report

    config = load_config()
    engine = SyncEngine(config, TillerLedger(create_sheet(config)))

    print(format_pull_report(engine.pull()))
    # ... edit the datastore ...
    report = engine.push(formulas="preserve")
"""

from .conflict import detect, diff_tab
from .engine import SyncEngine, read_status
from .formulas import has_gap, plan_formulas
from .lock import SyncLock, is_locked
from .models import (
    CollectionDiff,
    ConflictReport,
    FormulaPlan,
    FormulasMode,
    PullPhase,
    PullReport,
    PushPhase,
    PushReport,
    SyncStatus,
)
from .reporter import (
    format_conflict_report,
    format_pull_report,
    format_push_report,
    format_status,
    report_to_json,
)

__all__ = [
    "CollectionDiff",
    "ConflictReport",
    "FormulaPlan",
    "FormulasMode",
    "PullPhase",
    "PullReport",
    "PushPhase",
    "PushReport",
    "SyncEngine",
    "SyncLock",
    "SyncStatus",
    "detect",
    "diff_tab",
    "format_conflict_report",
    "format_pull_report",
    "format_push_report",
    "format_status",
    "has_gap",
    "is_locked",
    "plan_formulas",
    "read_status",
    "report_to_json",
]
