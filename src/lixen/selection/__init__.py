"""Selection algebra, dependency expansion and output resolution."""

from lixen.selection.algebra import (
    SelectionState,
    ToggleResult,
    all_selected_at_level,
    deselect_at_level,
    files_matching,
    select_at_level,
    selection_state_at_level,
    toggle_at_level,
)
from lixen.selection.expander import expand_dependencies
from lixen.selection.output import compute_output_files, compute_output_stats

__all__ = [
    "SelectionState",
    "ToggleResult",
    "all_selected_at_level",
    "compute_output_files",
    "compute_output_stats",
    "deselect_at_level",
    "expand_dependencies",
    "files_matching",
    "select_at_level",
    "selection_state_at_level",
    "toggle_at_level",
]
