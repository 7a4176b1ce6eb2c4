import unittest

import numpy as np

from keygrad.domain import (
    GRADIENT_GROUP,
    Accumulated,
    ArityMismatchError,
    Dtype,
    ExternalComputeError,
    NotYetImplementedError,
    Rerouted,
    ScalarValue,
    ShapeMismatchError,
    TensorType,
    TensorValue,
    TypeMismatchError,
)
from keygrad.infrastructure.operations import LinAlgOperation, new_linalg_op
from keygrad.infrastructure.operators import LinAlgOperatorKind
from keygrad.infrastructure.storage import new_scalar_value, new_tensor_value

from tests._graph_fixtures import ExprGraph, as_array

MATMUL = LinAlgOperatorKind.MATMUL
MATVECMUL = LinAlgOperatorKind.MATVECMUL
VECDOT = LinAlgOperatorKind.VECDOT
OUTERPROD = LinAlgOperatorKind.OUTERPROD

RNG = np.random.default_rng(7)


def tensor(data, dtype=np.float64) -> TensorValue:
    return new_tensor_value(np.asarray(data, dtype=dtype))


def rand(*shape: int) -> np.ndarray:
    return RNG.standard_normal(shape)


def maybe_t(arr: np.ndarray, flag: bool) -> np.ndarray:
    return arr.T if flag else arr


class TestLinAlgShapes(unittest.TestCase):
    def test_matmul(self) -> None:
        self.assertEqual(new_linalg_op(MATMUL).infer_shape((2, 3), (3, 4)), (2, 4))
        self.assertEqual(new_linalg_op(MATMUL, True).infer_shape((3, 2), (3, 4)), (2, 4))
        self.assertEqual(new_linalg_op(MATMUL, False, True).infer_shape((2, 3), (4, 3)), (2, 4))
        self.assertEqual(new_linalg_op(MATMUL, True, True).infer_shape((3, 2), (4, 3)), (2, 4))
        with self.assertRaises(ShapeMismatchError):
            new_linalg_op(MATMUL).infer_shape((2, 3), (2, 3))
        with self.assertRaises(ShapeMismatchError):
            new_linalg_op(MATMUL).infer_shape((2, 3), (3,))

    def test_matvecmul(self) -> None:
        self.assertEqual(new_linalg_op(MATVECMUL).infer_shape((2, 3), (3,)), (2, 1))
        self.assertEqual(new_linalg_op(MATVECMUL, True).infer_shape((3, 2), (3,)), (2, 1))
        with self.assertRaises(ShapeMismatchError):
            new_linalg_op(MATVECMUL).infer_shape((2, 3), (2,))

    def test_vecdot_and_outer(self) -> None:
        self.assertEqual(new_linalg_op(VECDOT).infer_shape((3,), (3,)), ())
        with self.assertRaises(ShapeMismatchError):
            new_linalg_op(VECDOT).infer_shape((3,), (4,))
        self.assertEqual(new_linalg_op(OUTERPROD).infer_shape((2,), (5,)), (2, 5))

    def test_unknown_shape_and_arity(self) -> None:
        with self.assertRaises(NotYetImplementedError):
            new_linalg_op(MATMUL).infer_shape(None, (3, 4))
        with self.assertRaises(ArityMismatchError):
            new_linalg_op(MATMUL).infer_shape((3, 4))

    def test_result_types(self) -> None:
        ft = new_linalg_op(MATVECMUL).result_type()
        self.assertEqual(ft.params[0].dims, 2)
        self.assertEqual(ft.params[1].dims, 1)
        self.assertEqual(ft.ret.dims, 1)
        self.assertNotIsInstance(new_linalg_op(VECDOT).result_type().ret, TensorType)
        self.assertEqual(new_linalg_op(OUTERPROD).result_type().ret.dims, 2)


class TestLinAlgIntrospection(unittest.TestCase):
    def test_flags(self) -> None:
        for kind in LinAlgOperatorKind:
            op = new_linalg_op(kind)
            self.assertTrue(op.returns_owned_buffer())
            self.assertIsNone(op.overwrite_candidate_operand_index())
            self.assertEqual(op.differentiable_inputs(2), [True, True])
        self.assertTrue(new_linalg_op(MATMUL).calls_external_compute())
        self.assertFalse(new_linalg_op(VECDOT).calls_external_compute())

    def test_identity_includes_transposes(self) -> None:
        a = new_linalg_op(MATMUL)
        self.assertEqual(a, LinAlgOperation(MATMUL, False, False))
        self.assertEqual(a.structural_hash(), LinAlgOperation(MATMUL).structural_hash())
        self.assertNotEqual(a.structural_hash(), new_linalg_op(MATMUL, True).structural_hash())

    def test_str(self) -> None:
        self.assertEqual(str(new_linalg_op(MATMUL, True, False)), "Aᵀ × B")
        self.assertEqual(str(new_linalg_op(OUTERPROD)), "a ⊗ b")


class TestLinAlgForward(unittest.TestCase):
    def test_matmul_with_transposes(self) -> None:
        a_np, b_np = rand(3, 2), rand(3, 4)
        a, b = tensor(a_np), tensor(b_np)
        r = new_linalg_op(MATMUL, True).forward(a, b)
        np.testing.assert_allclose(r.materialize(), a_np.T @ b_np)
        self.assertFalse(a.storage.transposed)
        self.assertEqual(a.shape, (3, 2))

    def test_matvecmul_yields_vector(self) -> None:
        a_np, v_np = rand(2, 3), rand(3)
        r = new_linalg_op(MATVECMUL).forward(tensor(a_np), tensor(v_np))
        self.assertEqual(r.shape, (2,))
        np.testing.assert_allclose(r.materialize(), a_np @ v_np)

    def test_vecdot_yields_scalar(self) -> None:
        r = new_linalg_op(VECDOT).forward(tensor([1.0, 2.0, 3.0]), tensor([4.0, 5.0, 6.0]))
        self.assertIsInstance(r, ScalarValue)
        self.assertEqual(float(r.v), 32.0)

    def test_outer(self) -> None:
        r = new_linalg_op(OUTERPROD).forward(tensor([1.0, 2.0]), tensor([3.0, 4.0, 5.0]))
        np.testing.assert_allclose(r.materialize(), np.outer([1.0, 2.0], [3.0, 4.0, 5.0]))

    def test_float32(self) -> None:
        r = new_linalg_op(MATMUL).forward(
            tensor(np.eye(2), np.float32), tensor(np.ones((2, 2)), np.float32)
        )
        self.assertIs(r.dtype, Dtype.FLOAT32)

    def test_transposes_restored_on_failure(self) -> None:
        a, b = tensor(rand(2, 3)), tensor(rand(2, 3))
        with self.assertRaises(ExternalComputeError) as ctx:
            new_linalg_op(MATMUL, True, True).forward(a, b)
        self.assertIsInstance(ctx.exception.__cause__, ValueError)
        self.assertFalse(a.storage.transposed)
        self.assertFalse(b.storage.transposed)

    def test_operand_errors(self) -> None:
        op = new_linalg_op(MATMUL)
        with self.assertRaises(TypeMismatchError):
            op.forward(tensor(np.eye(2)), new_scalar_value(1.0))
        with self.assertRaises(TypeMismatchError):
            op.forward(tensor(np.eye(2)), tensor(np.eye(2), np.float32))
        with self.assertRaises(ArityMismatchError):
            op.forward(tensor(np.eye(2)))

    def test_prealloc(self) -> None:
        a_np, b_np = rand(2, 3), rand(3, 2)
        dest = tensor(np.zeros((2, 2)))
        r = new_linalg_op(MATMUL).preallocated_forward(dest, tensor(a_np), tensor(b_np))
        self.assertIs(r, dest)
        np.testing.assert_allclose(dest.materialize(), a_np @ b_np)

        with self.assertRaises(TypeMismatchError):
            new_linalg_op(MATMUL).preallocated_forward(
                new_scalar_value(0.0), tensor(a_np), tensor(b_np)
            )

    def test_prealloc_reshapes_matvec_result(self) -> None:
        a_np, v_np = rand(2, 3), rand(3)
        dest = tensor(np.zeros((2, 1)))
        new_linalg_op(MATVECMUL).preallocated_forward(dest, tensor(a_np), tensor(v_np))
        np.testing.assert_allclose(dest.materialize()[:, 0], a_np @ v_np)

    def test_accumulating(self) -> None:
        a_np, b_np = rand(2, 3), rand(3, 2)
        acc = tensor(np.ones((2, 2)))
        result = new_linalg_op(MATMUL).accumulating_forward(acc, tensor(a_np), tensor(b_np))
        self.assertIsInstance(result, Accumulated)
        np.testing.assert_allclose(acc.materialize(), 1.0 + a_np @ b_np)

        incr = new_scalar_value(1.0)
        result = new_linalg_op(VECDOT).accumulating_forward(
            incr, tensor([1.0, 2.0]), tensor([3.0, 4.0])
        )
        self.assertIsInstance(result, Rerouted)
        self.assertEqual(float(result.value.v), 12.0)
        self.assertEqual(float(incr.v), 1.0)


class TestLinAlgSharedOperand(unittest.TestCase):
    def test_gram_product(self) -> None:
        x_np = rand(2, 3)
        x = tensor(x_np)
        r = new_linalg_op(MATMUL, False, True).forward(x, x)
        np.testing.assert_allclose(r.materialize(), x_np @ x_np.T)
        self.assertFalse(x.storage.transposed)

        r = new_linalg_op(MATMUL, True, False).forward(x, x)
        np.testing.assert_allclose(r.materialize(), x_np.T @ x_np)

    def test_square_with_one_transpose(self) -> None:
        a = tensor([[1.0, 2.0], [3.0, 4.0]])
        r = new_linalg_op(MATMUL, False, True).forward(a, a)
        np.testing.assert_allclose(r.materialize(), [[5.0, 11.0], [11.0, 25.0]])

    def test_both_transposed(self) -> None:
        a_np = rand(3, 3)
        a = tensor(a_np)
        r = new_linalg_op(MATMUL, True, True).forward(a, a)
        np.testing.assert_allclose(r.materialize(), a_np.T @ a_np.T)
        self.assertFalse(a.storage.transposed)

    def test_vecdot_with_itself(self) -> None:
        v = tensor([1.0, 2.0, 3.0])
        self.assertEqual(float(new_linalg_op(VECDOT).forward(v, v).v), 14.0)

    def test_numeric_gradient_of_shared_node(self) -> None:
        a_np, g_np = rand(3, 3), rand(3, 3)
        graph = ExprGraph()
        a = graph.variable(tensor(a_np), "a")
        op = new_linalg_op(MATMUL, True, True)
        z = graph.apply_op(op, a, a)
        graph.run(z, tensor(g_np))
        np.testing.assert_allclose(
            z.bound_dual_value().primal.materialize(), a_np.T @ a_np.T
        )

        op.numeric_differentiate([a, a], z)
        np.testing.assert_allclose(
            a.bound_dual_value().derivative.materialize(),
            a_np.T @ g_np.T + g_np.T @ a_np.T,
        )

    def test_scalar_shaped_accumulator_takes_the_sum(self) -> None:
        acc = tensor([[1.0]])
        result = new_linalg_op(OUTERPROD).accumulating_forward(
            acc, tensor([1.0, 2.0]), tensor([3.0, 4.0])
        )
        self.assertIsInstance(result, Accumulated)
        self.assertEqual(acc.shape, (1, 1))
        np.testing.assert_allclose(acc.materialize(), [[1.0 + 21.0]])


class TestLinAlgDifferentiation(unittest.TestCase):
    def _matmul_case(self, ta: bool, tb: bool):
        m, k, n = 2, 3, 4
        a_np = rand(k, m) if ta else rand(m, k)
        b_np = rand(n, k) if tb else rand(k, n)
        g_np = rand(m, n)
        a_eff, b_eff = maybe_t(a_np, ta), maybe_t(b_np, tb)
        da = maybe_t(g_np @ b_eff.T, ta)
        db = maybe_t(a_eff.T @ g_np, tb)
        return a_np, b_np, g_np, da, db

    def test_matmul_symbolic_all_transposes(self) -> None:
        for ta in (False, True):
            for tb in (False, True):
                with self.subTest(ta=ta, tb=tb):
                    a_np, b_np, g_np, da, db = self._matmul_case(ta, tb)
                    graph = ExprGraph()
                    a, b = graph.variable(tensor(a_np)), graph.variable(tensor(b_np))
                    grad = graph.variable(tensor(g_np))
                    op = new_linalg_op(MATMUL, ta, tb)
                    z = graph.apply_op(op, a, b)

                    dx, dy = op.symbolic_differentiate([a, b], z, grad)
                    self.assertEqual(dx.group, GRADIENT_GROUP)
                    self.assertEqual(tuple(dx.shape), a_np.shape)
                    self.assertEqual(tuple(dy.shape), b_np.shape)
                    np.testing.assert_allclose(as_array(graph.evaluate(dx)), da)
                    np.testing.assert_allclose(as_array(graph.evaluate(dy)), db)

    def test_matmul_numeric_all_transposes(self) -> None:
        for ta in (False, True):
            for tb in (False, True):
                with self.subTest(ta=ta, tb=tb):
                    a_np, b_np, g_np, da, db = self._matmul_case(ta, tb)
                    graph = ExprGraph()
                    a, b = graph.variable(tensor(a_np)), graph.variable(tensor(b_np))
                    op = new_linalg_op(MATMUL, ta, tb)
                    z = graph.apply_op(op, a, b)
                    graph.run(z, tensor(g_np))

                    op.numeric_differentiate([a, b], z)
                    np.testing.assert_allclose(a.bound_dual_value().derivative.materialize(), da)
                    np.testing.assert_allclose(b.bound_dual_value().derivative.materialize(), db)
                    self.assertFalse(a.bound_dual_value().primal.storage.transposed)

    def test_matvecmul_numeric(self) -> None:
        for ta in (False, True):
            with self.subTest(ta=ta):
                a_np = rand(3, 2) if ta else rand(2, 3)
                v_np, g_np = rand(3), rand(2)
                graph = ExprGraph()
                a, v = graph.variable(tensor(a_np)), graph.variable(tensor(v_np))
                op = new_linalg_op(MATVECMUL, ta)
                z = graph.apply_op(op, a, v)
                graph.run(z, tensor(g_np))

                op.numeric_differentiate([a, v], z)
                expected_da = np.outer(v_np, g_np) if ta else np.outer(g_np, v_np)
                np.testing.assert_allclose(a.bound_dual_value().derivative.materialize(), expected_da)
                np.testing.assert_allclose(
                    v.bound_dual_value().derivative.materialize(), maybe_t(a_np, ta).T @ g_np
                )

    def test_matvecmul_symbolic(self) -> None:
        a_np, v_np, g_np = rand(2, 3), rand(3), rand(2)
        graph = ExprGraph()
        a, v = graph.variable(tensor(a_np)), graph.variable(tensor(v_np))
        grad = graph.variable(tensor(g_np))
        op = new_linalg_op(MATVECMUL)
        z = graph.apply_op(op, a, v)

        da, dv = op.symbolic_differentiate([a, v], z, grad)
        np.testing.assert_allclose(as_array(graph.evaluate(da)), np.outer(g_np, v_np))
        np.testing.assert_allclose(as_array(graph.evaluate(dv)), a_np.T @ g_np)

    def test_vecdot(self) -> None:
        a_np, b_np = rand(4), rand(4)
        graph = ExprGraph()
        a, b = graph.variable(tensor(a_np)), graph.variable(tensor(b_np))
        op = new_linalg_op(VECDOT)
        z = graph.apply_op(op, a, b)
        self.assertEqual(tuple(z.shape), ())

        grad = graph.variable(new_scalar_value(2.0))
        da, db = op.symbolic_differentiate([a, b], z, grad)
        np.testing.assert_allclose(as_array(graph.evaluate(da)), 2.0 * b_np)
        np.testing.assert_allclose(as_array(graph.evaluate(db)), 2.0 * a_np)

        graph.run(z, new_scalar_value(2.0))
        op.numeric_differentiate([a, b], z)
        np.testing.assert_allclose(a.bound_dual_value().derivative.materialize(), 2.0 * b_np)
        np.testing.assert_allclose(b.bound_dual_value().derivative.materialize(), 2.0 * a_np)

    def test_outerprod(self) -> None:
        a_np, b_np, g_np = rand(2), rand(3), rand(2, 3)
        graph = ExprGraph()
        a, b = graph.variable(tensor(a_np)), graph.variable(tensor(b_np))
        grad = graph.variable(tensor(g_np))
        op = new_linalg_op(OUTERPROD)
        z = graph.apply_op(op, a, b)

        da, db = op.symbolic_differentiate([a, b], z, grad)
        np.testing.assert_allclose(as_array(graph.evaluate(da)), g_np @ b_np)
        np.testing.assert_allclose(as_array(graph.evaluate(db)), g_np.T @ a_np)

        graph.run(z, tensor(g_np))
        op.numeric_differentiate([a, b], z)
        np.testing.assert_allclose(a.bound_dual_value().derivative.materialize(), g_np @ b_np)
        np.testing.assert_allclose(b.bound_dual_value().derivative.materialize(), g_np.T @ a_np)


if __name__ == "__main__":
    unittest.main()
