import logging

import pytest

from nodalsim.errors import IterationLimitExceeded
from nodalsim.solver.pool import basic_solve, split_equations


def test_two_equations_two_unknowns():
    log, solution = basic_solve("x + y = 9\nx - y = 4", margin=1e-10)

    assert solution == {"x": pytest.approx(6.5), "y": pytest.approx(2.5)}
    assert log == ["x, y from ['x + y = 9', 'x - y = 4']"]


def test_split_ignores_lines_without_equals():
    text = "\n  a = 2 \nsome note\nb = a * 3; c = b\n"
    assert split_equations(text) == ["a = 2", "b = a * 3", "c = b"]


def test_single_unknowns_before_subsystems():
    system = """
    c + d = b
    c - d = 0
    b = a * 3
    a = 2
    """
    log, solution = basic_solve(system, margin=1e-10)

    assert solution["a"] == pytest.approx(2.0)
    assert solution["b"] == pytest.approx(6.0)
    assert solution["c"] == pytest.approx(3.0)
    assert solution["d"] == pytest.approx(3.0)
    assert log[:2] == ["a from 'a = 2'", "b from 'b = a * 3'"]
    assert len(log) == 3


def test_declared_guess_and_bounds_pick_the_root():
    _, positive = basic_solve("x^2 = 4", margin=1e-10)
    _, negative = basic_solve("x^2 = 4", declared={"x": (-1.0, -10.0, 0.0)}, margin=1e-10)

    assert positive["x"] == pytest.approx(2.0)
    assert negative["x"] == pytest.approx(-2.0)


def test_declared_variables_reach_subsystems():
    _, solution = basic_solve("x^2 + y = 4\nx - y = 2", declared={"x": (-2.5, -10.0, 0.0)}, margin=1e-10)

    assert solution["x"] == pytest.approx(-3.0)
    assert solution["y"] == pytest.approx(-5.0)


def test_context_constants_are_used_but_not_mutated():
    context = {"k": 3.0}
    _, solution = basic_solve("x = 2 * k", context, margin=1e-10)

    assert solution == {"k": 3.0, "x": pytest.approx(6.0)}
    assert context == {"k": 3.0}


def test_unreachable_equations_are_left_out(caplog):
    with caplog.at_level(logging.WARNING, logger="nodalsim.solver.pool"):
        log, solution = basic_solve("x + y = 1\nz = 4", margin=1e-10)

    assert solution == {"z": pytest.approx(4.0)}
    assert log == ["z from 'z = 4'"]
    assert "left unsolved" in caplog.text


def test_solver_failures_propagate():
    with pytest.raises(IterationLimitExceeded):
        basic_solve("x = 3", limit=0)
