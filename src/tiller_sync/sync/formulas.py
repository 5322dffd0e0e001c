"""Formula position checks for push.

Formulas are recorded by absolute (row, column) at pull time. They can
only be written back safely if every pulled row still sits where it was,
which holds exactly when the surviving ``original_order`` values are
still ``0..n-1``: a missing value means a row was deleted locally and
everything below it has shifted up.
"""

from __future__ import annotations

import logging

from ..errors import FormulaIntegrityError
from .models import FormulaPlan, FormulasMode

logger = logging.getLogger(__name__)


def has_gap(orders: list[int | None]) -> bool:
    """True if the non-null orders are not exactly ``0, 1, ..., n-1``.

    An empty or all-null sequence has no gap.
    """
    present = sorted(o for o in orders if o is not None)
    return any(order != ix for ix, order in enumerate(present))


def plan_formulas(
    mode: FormulasMode,
    has_formulas: bool,
    gaps: list[str],
    force: bool = False,
) -> FormulaPlan:
    """Decide whether push writes formulas back.

    Args:
        mode: Requested formula handling.
        has_formulas: Whether any formulas were recorded at the last pull.
        gaps: Names of tabs whose ``original_order`` has gaps.
        force: Override the gap refusal.

    Returns:
        The ``FormulaPlan`` to follow.

    Raises:
        FormulaIntegrityError: In ``UNKNOWN`` mode when formulas exist, or
            in ``PRESERVE`` mode with gaps and no override.
    """
    match mode:
        case FormulasMode.IGNORE:
            return FormulaPlan(write_formulas=False, gaps=gaps)

        case FormulasMode.UNKNOWN:
            if has_formulas:
                raise FormulaIntegrityError(
                    "The datastore holds formulas recorded from the sheet, "
                    "but no formula handling mode was chosen",
                    "Retry 'sync up' with formulas=preserve to write them "
                    "back, or formulas=ignore to write values only.",
                )
            return FormulaPlan(write_formulas=False, gaps=gaps)

        case FormulasMode.PRESERVE:
            if not gaps:
                return FormulaPlan(write_formulas=has_formulas)
            if not force:
                raise FormulaIntegrityError(
                    "Rows were deleted locally since the last pull "
                    f"({', '.join(gaps)}), so recorded formula positions no "
                    "longer match their rows"
                )
            warning = (
                f"Rows were deleted locally ({', '.join(gaps)}); formulas "
                "were written to their recorded positions, which may now "
                "be wrong"
            )
            logger.warning(warning)
            return FormulaPlan(
                write_formulas=has_formulas, gaps=gaps, warning=warning
            )

    raise ValueError(f"Unknown formulas mode: {mode}")
