import unittest

import numpy as np

from keygrad.domain import (
    GRADIENT_GROUP,
    Accumulated,
    ArityMismatchError,
    Dtype,
    NotDifferentiableError,
    NotYetImplementedError,
    Rerouted,
    ScalarValue,
    ShapeMismatchError,
    TensorType,
    TensorValue,
    TypeMismatchError,
    TypeVariable,
)
from keygrad.infrastructure.operations import new_ebo_by_type
from keygrad.infrastructure.operators import (
    BinaryOperatorKind,
    ScalarBinaryOperator,
    TensorBinaryOperator,
    UnaryOperatorKind,
)
from keygrad.infrastructure.storage import new_scalar_value, new_tensor_value

from tests._graph_fixtures import ExprGraph, as_array

F64 = Dtype.FLOAT64
T2 = TensorType(2, F64)
ADD = BinaryOperatorKind.ADD
SUB = BinaryOperatorKind.SUB
MUL = BinaryOperatorKind.MUL
DIV = BinaryOperatorKind.DIV
POW = BinaryOperatorKind.POW


def tensor(data) -> TensorValue:
    return new_tensor_value(np.asarray(data, dtype=np.float64))


class TestConstruction(unittest.TestCase):
    def test_operator_selection(self) -> None:
        self.assertIsInstance(new_ebo_by_type(ADD, F64, F64).operator, ScalarBinaryOperator)

        op = new_ebo_by_type(ADD, T2, F64)
        self.assertIsInstance(op.operator, TensorBinaryOperator)
        self.assertTrue(op.operator.tensor_left)

        op = new_ebo_by_type(ADD, F64, T2)
        self.assertFalse(op.operator.tensor_left)

    def test_unsupported_operand_types(self) -> None:
        with self.assertRaises(TypeMismatchError):
            new_ebo_by_type(ADD, TypeVariable("a"), F64)
        with self.assertRaises(TypeMismatchError):
            new_ebo_by_type(ADD, F64, TypeVariable("a"))


class TestTypeAndShape(unittest.TestCase):
    def test_arith_result_type(self) -> None:
        ft = new_ebo_by_type(ADD, T2, F64).result_type()
        self.assertIsInstance(ft.params[0], TensorType)
        self.assertIsInstance(ft.params[1], TypeVariable)
        self.assertEqual(ft.ret, ft.params[0])

    def test_comparison_result_type(self) -> None:
        ft = new_ebo_by_type(BinaryOperatorKind.LT, T2, T2).result_type()
        self.assertEqual(ft.ret, TensorType(2, Dtype.BOOL))

        ft = new_ebo_by_type(BinaryOperatorKind.LT, F64, F64).result_type()
        self.assertIs(ft.ret, Dtype.BOOL)

        ft = new_ebo_by_type(BinaryOperatorKind.LT, T2, T2, ret_same=True).result_type()
        self.assertEqual(ft.ret, ft.params[0])

    def test_infer_shape(self) -> None:
        op = new_ebo_by_type(ADD, T2, T2)
        self.assertEqual(op.infer_shape((), ()), ())
        self.assertEqual(op.infer_shape((3, 4), ()), (3, 4))
        self.assertEqual(op.infer_shape((), (3, 4)), (3, 4))
        self.assertEqual(op.infer_shape((3, 4), (3, 4)), (3, 4))
        with self.assertRaises(ShapeMismatchError):
            op.infer_shape((3, 4), (2, 2))

    def test_infer_shape_unknown(self) -> None:
        with self.assertRaises(NotYetImplementedError):
            new_ebo_by_type(ADD, T2, T2).infer_shape(None, (3, 4))

    def test_differentiable_inputs(self) -> None:
        self.assertEqual(new_ebo_by_type(MUL, T2, T2).differentiable_inputs(2), [True, True])
        self.assertEqual(
            new_ebo_by_type(BinaryOperatorKind.GT, T2, T2).differentiable_inputs(2),
            [False, False],
        )
        with self.assertRaises(ArityMismatchError):
            new_ebo_by_type(MUL, T2, T2).differentiable_inputs(3)


class TestIntrospection(unittest.TestCase):
    def test_buffer_ownership(self) -> None:
        self.assertFalse(new_ebo_by_type(ADD, F64, F64).returns_owned_buffer())
        self.assertTrue(new_ebo_by_type(ADD, F64, T2).returns_owned_buffer())
        self.assertIsNone(new_ebo_by_type(ADD, F64, F64).overwrite_candidate_operand_index())
        self.assertEqual(new_ebo_by_type(ADD, T2, T2).overwrite_candidate_operand_index(), 0)
        self.assertEqual(new_ebo_by_type(ADD, F64, T2).overwrite_candidate_operand_index(), 1)
        self.assertFalse(new_ebo_by_type(ADD, T2, T2).calls_external_compute())

    def test_structural_hash(self) -> None:
        a = new_ebo_by_type(ADD, T2, F64)
        b = new_ebo_by_type(ADD, T2, F64)
        self.assertEqual(a, b)
        self.assertEqual(a.structural_hash(), b.structural_hash())
        self.assertLess(a.structural_hash(), 2**32)

        self.assertNotEqual(a.structural_hash(), new_ebo_by_type(SUB, T2, F64).structural_hash())
        self.assertNotEqual(
            a.structural_hash(), new_ebo_by_type(ADD, F64, T2).structural_hash()
        )
        lt = new_ebo_by_type(BinaryOperatorKind.LT, T2, T2)
        lt_same = new_ebo_by_type(BinaryOperatorKind.LT, T2, T2, ret_same=True)
        self.assertNotEqual(lt.structural_hash(), lt_same.structural_hash())

    def test_str(self) -> None:
        self.assertEqual(str(new_ebo_by_type(MUL, T2, T2)), "⊙")


class TestForward(unittest.TestCase):
    def test_scalar_scalar(self) -> None:
        r = new_ebo_by_type(MUL, F64, F64).forward(new_scalar_value(2.0), new_scalar_value(4.0))
        self.assertIsInstance(r, ScalarValue)
        self.assertEqual(float(r.v), 8.0)

    def test_comparison_ret_same(self) -> None:
        two, three = new_scalar_value(2.0), new_scalar_value(3.0)
        r = new_ebo_by_type(BinaryOperatorKind.LT, F64, F64).forward(two, three)
        self.assertIs(r.dtype, Dtype.BOOL)
        self.assertTrue(bool(r.v))

        r = new_ebo_by_type(BinaryOperatorKind.LT, F64, F64, ret_same=True).forward(two, three)
        self.assertIs(r.dtype, F64)
        self.assertEqual(float(r.v), 1.0)

    def test_scalar_ops_ignore_buffer_strategies(self) -> None:
        op = new_ebo_by_type(ADD, F64, F64)
        one, two = new_scalar_value(1.0), new_scalar_value(2.0)
        self.assertEqual(float(op.unsafe_forward(one, two).v), 3.0)
        self.assertEqual(float(op.preallocated_forward(tensor([0.0]), one, two).v), 3.0)

    def test_scalar_accumulator_reroutes(self) -> None:
        op = new_ebo_by_type(ADD, F64, F64)
        incr = new_scalar_value(10.0)
        result = op.accumulating_forward(incr, new_scalar_value(1.0), new_scalar_value(2.0))
        self.assertIsInstance(result, Rerouted)
        self.assertEqual(float(result.value.v), 13.0)
        self.assertEqual(float(incr.v), 10.0)

    def test_tensor_strategies(self) -> None:
        op = new_ebo_by_type(SUB, T2, T2)
        a = tensor([[5.0, 6.0]])
        b = tensor([[1.0, 1.0]])

        np.testing.assert_allclose(op.forward(a, b).materialize(), [[4.0, 5.0]])

        dest = tensor([[0.0, 0.0]])
        self.assertIs(op.preallocated_forward(dest, a, b), dest)
        np.testing.assert_allclose(dest.materialize(), [[4.0, 5.0]])

        acc = tensor([[1.0, 1.0]])
        result = op.accumulating_forward(acc, a, b)
        self.assertIsInstance(result, Accumulated)
        np.testing.assert_allclose(acc.materialize(), [[5.0, 6.0]])

        self.assertIs(op.unsafe_forward(a, b), a)
        np.testing.assert_allclose(a.materialize(), [[4.0, 5.0]])


class TestSymbolicDifferentiation(unittest.TestCase):
    def setUp(self) -> None:
        self.g = ExprGraph()
        self.x = self.g.variable(tensor([[1.0, 2.0], [3.0, 4.0]]), "x")
        self.y = self.g.variable(tensor([[2.0, 4.0], [8.0, 16.0]]), "y")
        self.grad = self.g.variable(tensor([[1.0, 1.0], [2.0, 2.0]]), "g")

    def _apply(self, kind: BinaryOperatorKind):
        op = new_ebo_by_type(kind, self.x.type, self.y.type)
        z = self.g.apply_op(op, self.x, self.y)
        self.g.run(z)
        return op, z

    def test_add_returns_the_gradient_itself(self) -> None:
        op, z = self._apply(ADD)
        dx, dy = op.symbolic_differentiate([self.x, self.y], z, self.grad)
        self.assertIs(dx, self.grad)
        self.assertIs(dy, self.grad)

    def test_sub_negates_the_gradient(self) -> None:
        op, z = self._apply(SUB)
        dx, dy = op.symbolic_differentiate([self.x, self.y], z, self.grad)
        self.assertIs(dx, self.grad)
        self.assertIs(dy.op.kind, UnaryOperatorKind.NEG)
        self.assertEqual(dy.children, (self.grad,))
        self.assertEqual(dy.group, GRADIENT_GROUP)

    def test_mul_and_div_values(self) -> None:
        xa = as_array(self.x.bound_dual_value().primal)
        ya = as_array(self.y.bound_dual_value().primal)
        ga = as_array(self.grad.bound_dual_value().primal)

        op, z = self._apply(MUL)
        dx, dy = op.symbolic_differentiate([self.x, self.y], z, self.grad)
        np.testing.assert_allclose(as_array(self.g.evaluate(dx)), ya * ga)
        np.testing.assert_allclose(as_array(self.g.evaluate(dy)), xa * ga)

        op, z = self._apply(DIV)
        dx, dy = op.symbolic_differentiate([self.x, self.y], z, self.grad)
        np.testing.assert_allclose(as_array(self.g.evaluate(dx)), ga / ya)
        np.testing.assert_allclose(as_array(self.g.evaluate(dy)), -(xa / ya) / ya * ga)
        self.assertEqual(dx.group, GRADIENT_GROUP)
        self.assertEqual(dy.group, GRADIENT_GROUP)

    def test_scalar_input_receives_summed_gradient(self) -> None:
        b = self.g.variable(new_scalar_value(3.0), "b")
        op = new_ebo_by_type(MUL, self.x.type, b.type)
        z = self.g.apply_op(op, self.x, b)

        dx, db = op.symbolic_differentiate([self.x, b], z, self.grad)
        self.assertEqual(tuple(db.shape), ())
        xa = as_array(self.x.bound_dual_value().primal)
        ga = as_array(self.grad.bound_dual_value().primal)
        self.assertAlmostEqual(float(as_array(self.g.evaluate(db))), float(np.sum(xa * ga)))
        np.testing.assert_allclose(as_array(self.g.evaluate(dx)), 3.0 * ga)

    def test_arity_checked(self) -> None:
        op, z = self._apply(ADD)
        with self.assertRaises(ArityMismatchError):
            op.symbolic_differentiate([self.x], z, self.grad)

    def test_pow_not_yet_implemented(self) -> None:
        op, z = self._apply(POW)
        with self.assertRaises(NotYetImplementedError):
            op.symbolic_differentiate([self.x, self.y], z, self.grad)

    def test_comparisons_not_differentiable(self) -> None:
        for kind in BinaryOperatorKind:
            if kind.is_arith:
                continue
            with self.subTest(kind=kind.name):
                op = new_ebo_by_type(kind, self.x.type, self.y.type, ret_same=True)
                z = self.g.apply_op(op, self.x, self.y)
                with self.assertRaises(NotDifferentiableError):
                    op.symbolic_differentiate([self.x, self.y], z, self.grad)


class TestNumericDifferentiation(unittest.TestCase):
    def _scalar_setup(self, kind, x=2.0, y=3.0, g=1.0):
        graph = ExprGraph()
        xn = graph.variable(new_scalar_value(x), "x")
        yn = graph.variable(new_scalar_value(y), "y")
        op = new_ebo_by_type(kind, xn.type, yn.type)
        z = graph.apply_op(op, xn, yn)
        graph.run(z, new_scalar_value(g))
        return op, xn, yn, z

    def test_hadamard_mul_scalars(self) -> None:
        op, x, y, z = self._scalar_setup(MUL)
        op.numeric_differentiate([x, y], z)
        self.assertEqual(float(x.bound_dual_value().derivative.v), 3.0)
        self.assertEqual(float(y.bound_dual_value().derivative.v), 2.0)

    def test_add_and_sub_scalars(self) -> None:
        op, x, y, z = self._scalar_setup(ADD, g=2.0)
        op.numeric_differentiate([x, y], z)
        self.assertEqual(float(x.bound_dual_value().derivative.v), 2.0)
        self.assertEqual(float(y.bound_dual_value().derivative.v), 2.0)

        op, x, y, z = self._scalar_setup(SUB, g=2.0)
        op.numeric_differentiate([x, y], z)
        self.assertEqual(float(x.bound_dual_value().derivative.v), 2.0)
        self.assertEqual(float(y.bound_dual_value().derivative.v), -2.0)

    def test_div_scalars(self) -> None:
        op, x, y, z = self._scalar_setup(DIV, x=6.0, y=3.0, g=1.0)
        op.numeric_differentiate([x, y], z)
        self.assertAlmostEqual(float(x.bound_dual_value().derivative.v), 1.0 / 3.0)
        self.assertAlmostEqual(float(y.bound_dual_value().derivative.v), -6.0 / 9.0)

    def test_tensor_gradients_accumulate_in_place(self) -> None:
        graph = ExprGraph()
        x = graph.variable(tensor([1.0, 2.0, 3.0]), "x", derivative=tensor([1.0, 1.0, 1.0]))
        y = graph.variable(tensor([4.0, 5.0, 6.0]), "y")
        op = new_ebo_by_type(MUL, x.type, y.type)
        z = graph.apply_op(op, x, y)
        graph.run(z, tensor([1.0, 2.0, 3.0]))

        dx_before = x.bound_dual_value().derivative
        op.numeric_differentiate([x, y], z)

        self.assertIs(x.bound_dual_value().derivative, dx_before)
        np.testing.assert_allclose(dx_before.materialize(), [5.0, 11.0, 19.0])
        np.testing.assert_allclose(
            y.bound_dual_value().derivative.materialize(), [1.0, 4.0, 9.0]
        )

    def test_tensor_add_and_sub(self) -> None:
        graph = ExprGraph()
        x = graph.variable(tensor([1.0, 2.0]), "x")
        y = graph.variable(tensor([3.0, 4.0]), "y")
        op = new_ebo_by_type(SUB, x.type, y.type)
        z = graph.apply_op(op, x, y)
        graph.run(z, tensor([1.0, 3.0]))

        op.numeric_differentiate([x, y], z)
        np.testing.assert_allclose(x.bound_dual_value().derivative.materialize(), [1.0, 3.0])
        np.testing.assert_allclose(y.bound_dual_value().derivative.materialize(), [-1.0, -3.0])

    def test_scalar_operand_of_tensor_op_gets_reduced_gradient(self) -> None:
        graph = ExprGraph()
        x = graph.variable(tensor([1.0, 2.0, 3.0]), "x")
        b = graph.variable(new_scalar_value(10.0), "b")
        op = new_ebo_by_type(ADD, x.type, b.type)
        z = graph.apply_op(op, x, b)
        graph.run(z, tensor([1.0, 2.0, 3.0]))

        op.numeric_differentiate([x, b], z)
        db = b.bound_dual_value().derivative
        self.assertIsInstance(db, ScalarValue)
        self.assertEqual(float(db.v), 6.0)
        np.testing.assert_allclose(x.bound_dual_value().derivative.materialize(), [1.0, 2.0, 3.0])

    def test_scalar_operand_with_prior_gradient(self) -> None:
        graph = ExprGraph()
        x = graph.variable(tensor([1.0, 2.0, 3.0]), "x")
        b = graph.variable(new_scalar_value(5.0), "b", derivative=new_scalar_value(1.0))
        op = new_ebo_by_type(MUL, x.type, b.type)
        z = graph.apply_op(op, x, b)
        graph.run(z, tensor([1.0, 1.0, 1.0]))

        op.numeric_differentiate([x, b], z)
        db = b.bound_dual_value().derivative
        self.assertIsInstance(db, ScalarValue)
        self.assertEqual(float(db.v), 7.0)

    def test_pow_and_comparisons(self) -> None:
        op, x, y, z = self._scalar_setup(POW)
        with self.assertRaises(NotYetImplementedError):
            op.numeric_differentiate([x, y], z)

        op, x, y, z = self._scalar_setup(BinaryOperatorKind.GTE)
        with self.assertRaises(NotDifferentiableError):
            op.numeric_differentiate([x, y], z)


class TestScalarShapedTensorOperands(unittest.TestCase):
    """Tensors of shape [1], [1, 1], ... facing a full tensor."""

    def test_forward_shape_matches_inference(self) -> None:
        cases = [
            ((1,), (3,)),
            ((3,), (1,)),
            ((1, 1), (2, 3)),
            ((1, 1, 1), (3, 4)),
            ((3, 4), (1, 1, 1)),
        ]
        for sx, sy in cases:
            with self.subTest(x=sx, y=sy):
                x, y = tensor(np.full(sx, 2.0)), tensor(np.ones(sy))
                op = new_ebo_by_type(MUL, x.type, y.type)
                r = op.forward(x, y)
                self.assertEqual(r.shape, op.infer_shape(sx, sy))
                np.testing.assert_allclose(r.materialize(), np.full(r.shape, 2.0))

    def test_numeric_mul_bias(self) -> None:
        graph = ExprGraph()
        x = graph.variable(tensor([2.0]), "x")
        y = graph.variable(tensor([1.0, 2.0, 3.0]), "y")
        op = new_ebo_by_type(MUL, x.type, y.type)
        z = graph.apply_op(op, x, y)
        self.assertEqual(tuple(z.shape), (3,))
        graph.run(z, tensor([1.0, 1.0, 1.0]))

        dx_before = x.bound_dual_value().derivative
        op.numeric_differentiate([x, y], z)

        self.assertIs(x.bound_dual_value().derivative, dx_before)
        np.testing.assert_allclose(dx_before.materialize(), [6.0])
        np.testing.assert_allclose(y.bound_dual_value().derivative.materialize(), [2.0, 2.0, 2.0])

    def test_numeric_add_bias_keeps_prior_once(self) -> None:
        graph = ExprGraph()
        x = graph.variable(tensor([4.0, 5.0, 6.0]), "x")
        b = graph.variable(tensor([0.5]), "b", derivative=tensor([1.0]))
        op = new_ebo_by_type(ADD, x.type, b.type)
        z = graph.apply_op(op, x, b)
        graph.run(z, tensor([1.0, 2.0, 3.0]))

        op.numeric_differentiate([x, b], z)
        db = b.bound_dual_value().derivative
        self.assertIsInstance(db, TensorValue)
        self.assertEqual(db.shape, (1,))
        np.testing.assert_allclose(db.materialize(), [7.0])
        np.testing.assert_allclose(x.bound_dual_value().derivative.materialize(), [1.0, 2.0, 3.0])

    def test_numeric_div_by_matrix_bias(self) -> None:
        graph = ExprGraph()
        x = graph.variable(tensor([[2.0, 4.0], [6.0, 8.0]]), "x")
        y = graph.variable(tensor([[2.0]]), "y")
        op = new_ebo_by_type(DIV, x.type, y.type)
        z = graph.apply_op(op, x, y)
        graph.run(z, tensor(np.ones((2, 2))))

        op.numeric_differentiate([x, y], z)
        np.testing.assert_allclose(x.bound_dual_value().derivative.materialize(), np.full((2, 2), 0.5))
        dy = y.bound_dual_value().derivative
        self.assertEqual(dy.shape, (1, 1))
        np.testing.assert_allclose(dy.materialize(), [[-5.0]])

    def test_symbolic_bias_gradient_is_summed(self) -> None:
        graph = ExprGraph()
        x = graph.variable(tensor([2.0]), "x")
        y = graph.variable(tensor([1.0, 2.0, 3.0]), "y")
        grad = graph.variable(tensor([1.0, 1.0, 1.0]), "g")
        op = new_ebo_by_type(MUL, x.type, y.type)
        z = graph.apply_op(op, x, y)

        dx, dy = op.symbolic_differentiate([x, y], z, grad)
        self.assertEqual(float(as_array(graph.evaluate(dx)).sum()), 6.0)
        np.testing.assert_allclose(as_array(graph.evaluate(dy)), [2.0, 2.0, 2.0])


if __name__ == "__main__":
    unittest.main()
