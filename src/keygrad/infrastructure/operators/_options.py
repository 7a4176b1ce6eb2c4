"""
Evaluation strategies and the execution options threaded into kernels.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np


class EvaluationStrategy(Enum):
    """
    How an operation may treat memory while evaluating.

    Attributes
    ----------
    DO : EvaluationStrategy
        Allocate a fresh result; operand buffers are untouched.
    UNSAFE_DO : EvaluationStrategy
        Overwrite one operand's buffer in place. The caller guarantees the
        operand is not read elsewhere afterwards.
    USE_PREALLOC_DO : EvaluationStrategy
        Write the result into a caller-supplied tensor buffer.
    INCR_DO : EvaluationStrategy
        Add the result into a caller-supplied accumulator.
    """

    DO = "do"
    UNSAFE_DO = "unsafe_do"
    USE_PREALLOC_DO = "use_prealloc_do"
    INCR_DO = "incr_do"


@dataclass(frozen=True)
class ExecutionOptions:
    """
    Per-call kernel options.

    Attributes
    ----------
    unsafe : bool
        Overwrite the tensor operand (left operand preferred).
    reuse : Optional[np.ndarray]
        Destination buffer for the result.
    incr : Optional[np.ndarray]
        Accumulator the result is added into.
    as_same_type : bool
        Comparison results are cast to the operand dtype (1/0) instead of
        bool.
    """

    unsafe: bool = False
    reuse: Optional[np.ndarray] = None
    incr: Optional[np.ndarray] = None
    as_same_type: bool = False

    def __post_init__(self) -> None:
        chosen = sum((self.unsafe, self.reuse is not None, self.incr is not None))
        if chosen > 1:
            raise ValueError("unsafe, reuse and incr are mutually exclusive")
