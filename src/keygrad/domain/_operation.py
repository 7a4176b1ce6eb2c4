"""
Operation interface definitions.

This module defines the abstract base class for every operation the graph
evaluator can dispatch: elementwise binary and unary operations, linear
algebra operations and reductions. An :class:`Operation` is immutable once
constructed and bundles

- type and shape inference,
- differentiability introspection,
- symbolic differentiation (building new graph sub-expressions),
- numeric differentiation (accumulating into bound derivative values),
- forward evaluation under the four evaluation strategies, and
- a structural hash used for common-subexpression elimination.

The contract extends a plain forward/backward function with the
allocation-aware evaluation entry points a graph driver needs.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple

from ._constants import HASH_DIGEST_SIZE
from ._errors import NotYetImplementedError
from ._graph import INode
from ._shape import Shape
from ._types import Type
from ._value import IncrResult, Value


class Operation(ABC):
    """
    Abstract base class for dispatchable operations.

    Notes
    -----
    - Operations are referenced, never copied-and-mutated, by forward and
      backward evaluation.
    - Two operations with equal :meth:`identity` are interchangeable.
    """

    @abstractmethod
    def arity(self) -> int:
        """Number of operands the operation consumes."""
        ...

    @abstractmethod
    def result_type(self) -> Type:
        """
        Return the operation's function type.

        Returns
        -------
        Type
            A ``FunctionType`` whose parameters are the operand types and
            whose return type is the result type.
        """
        ...

    @abstractmethod
    def infer_shape(self, *shapes: Sequence[int]) -> Shape:
        """
        Infer the result shape from the operand shapes.

        Raises
        ------
        ShapeMismatchError
            If the operand shapes are incompatible.
        """
        ...

    @abstractmethod
    def differentiable_inputs(self, inputs: int) -> list[bool]:
        """
        Report, per operand, whether the operation is differentiable with
        respect to it.

        Raises
        ------
        ArityMismatchError
            If ``inputs`` differs from :meth:`arity`.
        """
        ...

    @abstractmethod
    def symbolic_differentiate(
        self, inputs: Sequence[INode], output: INode, grad: INode
    ) -> list[INode]:
        """
        Build gradient sub-expressions for each input.

        Parameters
        ----------
        inputs : Sequence[INode]
            The operation's operand nodes.
        output : INode
            The node this operation produced.
        grad : INode
            Gradient of the objective with respect to ``output``.

        Returns
        -------
        list[INode]
            One gradient node per input, tagged as belonging to the gradient
            group.
        """
        ...

    @abstractmethod
    def numeric_differentiate(self, inputs: Sequence[INode], output: INode) -> None:
        """
        Accumulate gradients directly into the inputs' bound dual values.

        The output's dual value must already hold the upstream derivative.
        """
        ...

    @abstractmethod
    def forward(self, *values: Value) -> Value:
        """Evaluate the operation, allocating a fresh result when needed."""
        ...

    def unsafe_forward(self, *values: Value) -> Value:
        """Evaluate, permitting an operand buffer to be overwritten."""
        return self.forward(*values)

    def preallocated_forward(self, dest: Value, *values: Value) -> Value:
        """Evaluate into the caller-supplied ``dest`` buffer."""
        return self.forward(*values)

    def accumulating_forward(self, incr: Value, *values: Value) -> IncrResult:
        """
        Evaluate and add the result into ``incr``.

        Returns
        -------
        Accumulated | Rerouted
            ``Accumulated`` when ``incr`` was updated in place, ``Rerouted``
            carrying the new value when it could not be.
        """
        raise NotYetImplementedError(type(self).__name__, "accumulating_forward")

    @abstractmethod
    def returns_owned_buffer(self) -> bool:
        """Whether forward evaluation allocates a buffer the caller owns."""
        ...

    @abstractmethod
    def overwrite_candidate_operand_index(self) -> Optional[int]:
        """Index of the operand that unsafe evaluation may overwrite, if any."""
        ...

    @abstractmethod
    def calls_external_compute(self) -> bool:
        """Whether evaluation routes to an external compute kernel."""
        ...

    @abstractmethod
    def identity(self) -> Tuple[object, ...]:
        """The fields that define structural identity."""
        ...

    def structural_hash(self) -> int:
        """
        Return a 32-bit digest of :meth:`identity`.

        The digest is stable across processes (unlike ``hash()``), which
        makes it usable as a deduplication key for serialized graphs.
        """
        payload = "|".join(str(part) for part in self.identity()).encode("utf-8")
        digest = hashlib.blake2s(payload, digest_size=HASH_DIGEST_SIZE).digest()
        return int.from_bytes(digest, "little")
