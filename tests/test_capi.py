import json
import math

import pytest

from nodalsim import capi
from nodalsim.linalg.matrix import InversionOutcome
from nodalsim.solver.system import ConstraintStatus


def test_matrix_handles():
    m = capi.new_double_matrix(2, 2)
    assert m != capi.NULL

    assert capi.index_mut_double_matrix(m, 0, 0, 4.0) == capi.SUCCESS
    assert capi.index_mut_double_matrix(m, 0, 1, 7.0) == capi.SUCCESS
    assert capi.index_mut_double_matrix(m, 1, 0, 2.0) == capi.SUCCESS
    assert capi.index_mut_double_matrix(m, 1, 1, 6.0) == capi.SUCCESS
    assert capi.trace(m) == 10.0

    inv = capi.clone_double_matrix(m)
    assert capi.try_inplace_invert(inv) == InversionOutcome.SUCCESS == 2**32 - 1

    prod = capi.multiply_matrix(m, inv)
    assert capi.index_double_matrix(prod, 0, 0) == pytest.approx(1.0)
    assert capi.index_double_matrix(prod, 0, 1) == pytest.approx(0.0, abs=1e-12)

    t = capi.transpose(m)
    assert capi.index_double_matrix(t, 0, 1) == 2.0

    for h in (m, inv, prod, t):
        assert capi.free_double_matrix(h) == capi.SUCCESS


def test_freed_handles_fail():
    m = capi.new_double_identity_matrix(2)
    assert capi.free_double_matrix(m) == capi.SUCCESS

    assert capi.free_double_matrix(m) == capi.FAILURE
    assert capi.index_double_matrix(m, 0, 0) == capi.DOUBLE_SENTINEL
    assert capi.inplace_scale(m, 2.0) == capi.FAILURE
    assert capi.clone_double_matrix(m) == capi.NULL


def test_failures_return_sentinels():
    assert capi.new_double_matrix(-1, 2) == capi.NULL

    m = capi.new_double_matrix(2, 3)
    assert capi.index_double_matrix(m, 5, 0) == capi.DOUBLE_SENTINEL
    assert capi.inplace_row_swap(m, 0, 9) == capi.FAILURE
    assert math.isnan(capi.trace(m))
    assert capi.multiply_matrix(m, m) == capi.NULL
    assert capi.subset(m, 1, 1, 0, 0) == capi.NULL
    # a matrix handle is not a system handle
    assert capi.free_system(m) == capi.FAILURE
    assert capi.free_double_matrix(m) == capi.SUCCESS


def test_row_operations_and_shapes():
    m = capi.new_double_identity_matrix(2)
    assert capi.inplace_row_scale(m, 0, 3.0) == capi.SUCCESS
    assert capi.inplace_row_add(m, 0, 1) == capi.SUCCESS
    assert capi.inplace_scaled_row_add(m, 1, 0, -1.0) == capi.SUCCESS
    # rows are now [0, -1] and [3, 1]
    assert capi.index_double_matrix(m, 0, 1) == -1.0
    assert capi.index_double_matrix(m, 1, 0) == 3.0

    aug = capi.augment_with(m, m)
    block = capi.subset(aug, 0, 2, 1, 3)
    assert capi.index_double_matrix(block, 1, 0) == 3.0
    for h in (m, aug, block):
        capi.free_double_matrix(h)


def test_singular_inversion_code():
    m = capi.new_double_matrix(2, 2)
    capi.index_mut_double_matrix(m, 0, 0, 1.0)
    assert capi.try_inplace_invert(m) == InversionOutcome.DETERMINANT_ZERO
    capi.free_double_matrix(m)


def test_solve_equation_with_context():
    ctx = capi.new_context_hash_map()
    assert capi.add_const_to_ctx(ctx, "k", 2.0) == capi.SUCCESS
    assert capi.add_const_to_ctx(ctx, "not a name", 1.0) == capi.FAILURE

    out = capi.solve_equation("x^2 = k", ctx, 1.0, 0.0, 10.0, 1e-9, 100)
    assert json.loads(out) == {"x": pytest.approx(math.sqrt(2.0))}

    assert capi.solve_equation("x + y", ctx, 1.0, 0.0, 10.0, 1e-9, 100) is None
    assert capi.free_context_hash_map(ctx) == capi.SUCCESS
    assert capi.free_context_hash_map(ctx) == capi.FAILURE
    assert capi.solve_equation("x - k", ctx, 1.0, 0.0, 10.0, 1e-9, 100) is None

    default = capi.new_default_context_hash_map()
    out = capi.solve_equation("x = pi", default, 1.0, 0.0, 10.0, 1e-9, 100)
    assert json.loads(out)["x"] == pytest.approx(math.pi)
    capi.free_context_hash_map(default)


def test_system_builder_handles():
    builder = capi.new_system_builder("x + y = 3", capi.NULL)
    assert builder != capi.NULL
    assert capi.is_fully_constrained(builder) == ConstraintStatus.NOT_CONSTRAINED
    assert capi.build_system(builder) == capi.NULL

    assert capi.try_constrain_with(builder, "x - y = 1") == ConstraintStatus.CONSTRAINED
    assert capi.try_constrain_with(builder, "x = 5") == ConstraintStatus.CONSTRAINT_ERROR

    system = capi.build_system(builder)
    assert system != capi.NULL
    assert capi.specify_variable(system, "x", 0.0, -10.0, 10.0) == capi.SUCCESS
    assert capi.specify_variable(system, "z", 0.0, -10.0, 10.0) == capi.FAILURE

    solution = json.loads(capi.solve_system(system, 1e-9, 100))
    assert solution == {"x": pytest.approx(2.0), "y": pytest.approx(1.0)}
    assert capi.solve_system(system, 1e-9, 0) is None

    assert capi.free_system(system) == capi.SUCCESS
    assert capi.free_system_builder(builder) == capi.SUCCESS
    assert capi.free_system_builder(builder) == capi.FAILURE
    assert capi.try_constrain_with(builder, "x = 1") == ConstraintStatus.CONSTRAINT_ERROR


def test_bad_seed_equation():
    assert capi.new_system_builder("", capi.NULL) == capi.NULL


def test_basic_solve_with_declared_variables():
    ctx = capi.new_context_hash_map()
    capi.add_const_to_ctx(ctx, "nine", 9.0)
    declared = capi.new_declared_hash_map()
    assert capi.add_declared_variable(declared, "x", 3.0, 0.0, 100.0) == capi.SUCCESS
    assert capi.add_declared_variable(declared, "2x", 3.0, 0.0, 100.0) == capi.FAILURE

    out = json.loads(capi.basic_solve("x + y = nine\nx - y = 4", ctx, declared, 1e-9, 100))
    assert out["solution"]["x"] == pytest.approx(6.5)
    assert out["solution"]["y"] == pytest.approx(2.5)
    assert out["solution"]["nine"] == 9.0
    assert len(out["log"]) == 1
    assert capi.free_solution_string(json.dumps(out)) == capi.SUCCESS

    assert capi.basic_solve("x = 1", ctx, declared, 1e-9, 0) is None
    assert capi.free_declared_hash_map(declared) == capi.SUCCESS
    assert capi.free_declared_hash_map(declared) == capi.FAILURE
    assert capi.basic_solve("x = 1", ctx, declared, 1e-9, 100) is None
    # a context handle is not a declared-variables handle
    assert capi.free_declared_hash_map(ctx) == capi.FAILURE
    capi.free_context_hash_map(ctx)


def test_debug_system_builder():
    builder = capi.new_system_builder("x + y = 3", capi.NULL)
    assert capi.debug_system_builder(builder) == "SystemBuilder(equations=['x + y = 3'], variables=['x', 'y'])"
    capi.free_system_builder(builder)
    assert capi.debug_system_builder(builder) is None
