"""Mutable state owned by one writer session."""

from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from uimf.params import FrameParams, GlobalParams


@dataclass
class WriterSession:
    """Process-local state of an open writer.

    Created when the writer opens and cleared when it closes. Nothing in here
    is shared between sessions.

    Attributes
    ----------
    path : str
        Container path.
    last_flush : float
        Clock reading at the last commit/reopen boundary.
    transaction_open : bool
        True while a batch transaction is open.
    commit_count : int
        Number of commits issued by the coordinator.
    frame_param_keys : set of int
        ParamIDs known to be registered in ``Frame_Param_Keys``.
    legacy_frame_nums : set of int
        Frame numbers that already have a row in the legacy frame table.
    legacy_global_row_present : bool
        True once the single legacy global row is known to exist.
    legacy_columns : set of str or None
        Lower-cased column names of the legacy frame table; None until read.
    global_params : GlobalParams
        Cache of ``Global_Params``.
    frame_params : dict
        Lazily loaded per-frame parameter aggregates.
    """

    path: str
    last_flush: float = 0.0
    transaction_open: bool = False
    commit_count: int = 0
    frame_param_keys: Set[int] = field(default_factory=set)
    legacy_frame_nums: Set[int] = field(default_factory=set)
    legacy_global_row_present: bool = False
    legacy_columns: Optional[Set[str]] = None
    global_params: GlobalParams = field(default_factory=GlobalParams)
    frame_params: Dict[int, FrameParams] = field(default_factory=dict)
    closed: bool = False

    def forget_frames(self, frame_nums=None) -> None:
        """Drop cached frame state (all frames when ``frame_nums`` is None)."""
        if frame_nums is None:
            self.frame_params.clear()
            self.legacy_frame_nums.clear()
            return
        for frame_num in frame_nums:
            self.frame_params.pop(frame_num, None)
            self.legacy_frame_nums.discard(frame_num)

    def teardown(self) -> None:
        self.frame_param_keys.clear()
        self.legacy_frame_nums.clear()
        self.legacy_columns = None
        self.frame_params.clear()
        self.transaction_open = False
        self.closed = True
