import itertools

import numpy as np
import pytest

import pldFormulation as pf
from pldErrors import InputValidationError


def _satisfied(con, values, tol=1e-9):
    lhs = sum(v * values[name] for (name, v) in zip(con.ind, con.val))
    if con.sense == pf.LESS_EQUAL:
        return lhs <= con.rhs + tol
    return abs(lhs - con.rhs) <= tol


def _first_choice(ranking, x, n):
    for a in ranking:
        if a == n + 1 or x[a - 1] == 1:
            return a


# ---------------------------------------------------------------------------
# encodeRanking
# ---------------------------------------------------------------------------

def test_encode_ranking_emits_expected_rows():
    cons = pf.encodeRanking([2, 1, 3], k=1, n=2)
    by_name = {c.name: c for c in cons}

    assert len(cons) == pf.countConstraints(2, 1)
    assert by_name["offer_1_1"] == pf.LinearConstraint("offer_1_1", ("y_1_1", "x_1"), (1.0, -1.0), "L", 0.0)
    assert by_name["offer_2_1"].ind == ("y_2_1", "x_2")
    # product 2 is ranked first: it blocks product 1 and no-purchase
    assert by_name["pref_2_1_1"] == pf.LinearConstraint("pref_2_1_1", ("y_1_1", "x_2"), (1.0, 1.0), "L", 1.0)
    assert by_name["pref_2_3_1"].ind == ("y_3_1", "x_2")
    # product 1 blocks no-purchase
    assert by_name["pref_1_3_1"].ind == ("y_3_1", "x_1")
    assert by_name["choice_1"] == pf.LinearConstraint("choice_1", ("y_1_1", "y_2_1", "y_3_1"),
                                                      (1.0, 1.0, 1.0), "E", 1.0)


def test_no_purchase_has_no_offer_link():
    cons = pf.encodeRanking([1, 2, 3], k=4, n=2)
    offer_rows = [c for c in cons if c.name.startswith("offer_")]
    assert [c.ind[0] for c in offer_rows] == ["y_1_4", "y_2_4"]


def test_no_purchase_before_last_rank_zeroes_the_rest():
    cons = pf.encodeRanking([1, 3, 2], k=1, n=2)
    names = [c.name for c in cons]

    assert "after_nopurchase_2_1" in names
    row = cons[names.index("after_nopurchase_2_1")]
    assert row.ind == ("y_2_1",) and row.val == (1.0,) and row.rhs == 0.0 and row.sense == "L"
    assert len(cons) == pf.countConstraints(2, 1)


@pytest.mark.parametrize("n", [1, 2, 3])
def test_integer_points_encode_first_choice(n):
    # For every binary assortment, the only binary y satisfying the rows is
    # the indicator of the first offered alternative.
    for ranking in itertools.permutations(range(1, n + 2)):
        if ranking[-1] != n + 1:
            continue
        cons = pf.encodeRanking(ranking, k=1, n=n)
        for x in itertools.product([0, 1], repeat=n):
            feasible = []
            for y in itertools.product([0, 1], repeat=n + 1):
                values = {pf.xName(i): x[i - 1] for i in range(1, n + 1)}
                values.update({pf.yName(i, 1): y[i - 1] for i in range(1, n + 2)})
                if all(_satisfied(c, values) for c in cons):
                    feasible.append(y)
            chosen = _first_choice(ranking, x, n)
            assert feasible == [tuple(int(i == chosen) for i in range(1, n + 2))]


# ---------------------------------------------------------------------------
# buildFormulation
# ---------------------------------------------------------------------------

def test_build_declares_variables_per_mode():
    f = pf.buildFormulation(2, [5, 8], 1, [1.0], [[2, 1, 3]])
    kinds = dict(f.variables)
    assert f.is_integer
    assert kinds["x_1"] == pf.BINARY and kinds["x_2"] == pf.BINARY
    assert all(kinds[pf.yName(i, 1)] == pf.NONNEGATIVE for i in range(1, 4))
    assert len(f.variables) == 2 + 3

    relaxed = pf.buildFormulation(2, [5, 8], 1, [1.0], [[2, 1, 3]], isRelaxation=True)
    assert not relaxed.is_integer
    assert dict(relaxed.variables)["x_1"] == pf.UNIT
    assert relaxed.constraints == f.constraints


def test_objective_skips_no_purchase_and_zero_terms():
    f = pf.buildFormulation(2, [5, 0], 2, [0.25, 0.75], [[1, 2, 3], [2, 1, 3]])
    assert dict(f.objective) == {"y_1_1": 1.25, "y_1_2": 3.75}


def test_side_constraints_come_first_and_drop_zero_coefficients():
    f = pf.buildFormulation(2, [5, 8], 1, [1.0], [[2, 1, 3]], A_feas=[[0, 1], [2, -1]], b_feas=[0, 1])
    assert f.constraints[0] == pf.LinearConstraint("side_1", ("x_2",), (1.0,), "L", 0.0)
    assert f.constraints[1] == pf.LinearConstraint("side_2", ("x_1", "x_2"), (2.0, -1.0), "L", 1.0)
    assert len(f.constraints) == pf.countConstraints(2, 1, 2)


def test_empty_b_feas_means_no_side_constraints():
    f = pf.buildFormulation(2, [5, 8], 1, [1.0], [[2, 1, 3]], A_feas=[[1, 1]], b_feas=[])
    assert not any(c.name.startswith("side_") for c in f.constraints)


def test_warm_start_is_attached_to_every_x():
    f = pf.buildFormulation(3, [1, 2, 3], 1, [1.0], [[1, 2, 3, 4]], x_initial=[1, 0, 1])
    assert f.warm_start == (("x_1", 1.0), ("x_2", 0.0), ("x_3", 1.0))

    assert pf.buildFormulation(3, [1, 2, 3], 1, [1.0], [[1, 2, 3, 4]], x_initial=[]).warm_start == ()


def test_constraint_count_grows_quadratically():
    rng = np.random.default_rng(3)
    n, K = 6, 4
    orderings = [list(rng.permutation(n) + 1) + [n + 1] for _ in range(K)]
    f = pf.buildFormulation(n, rng.uniform(1, 5, n), K, [0.25] * K, orderings)
    assert len(f.constraints) == pf.countConstraints(n, K) == K * (n + n * (n + 1) // 2 + 1)


def test_formulation_is_immutable():
    f = pf.buildFormulation(1, [10], 1, [1.0], [[1, 2]])
    with pytest.raises(AttributeError):
        f.is_integer = False
    assert isinstance(f.constraints, tuple)


# ---------------------------------------------------------------------------
# validateInputs
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("kwargs", [
    dict(lam=[0.5, 0.4]),
    dict(lam=[1.5, -0.5]),
    dict(lam=[1.0]),
    dict(orderings=[[1, 1, 3], [2, 1, 3]]),
    dict(orderings=[[1, 2, 4], [2, 1, 3]]),
    dict(orderings=[[1, 2], [2, 1]]),
    dict(revenues=[5]),
    dict(revenues=[5, float("nan")]),
    dict(n=0),
    dict(numPermutations=0),
    dict(x_initial=[1, 0, 1]),
    dict(isRelaxation=True, x_initial=[1, 0]),
    dict(A_feas=[[1, 1, 1]], b_feas=[1]),
    dict(A_feas=[[1, 1]], b_feas=[1, 2]),
    dict(x_initial=np.float64(1.0)),
    dict(x_initial=1),
    dict(A_feas=[[1, 1]], b_feas=1.0),
])
def test_invalid_inputs_are_rejected(kwargs):
    args = dict(n=2, revenues=[5, 8], numPermutations=2, lam=[0.5, 0.5],
                orderings=[[1, 2, 3], [2, 1, 3]])
    args.update(kwargs)
    with pytest.raises(InputValidationError):
        pf.buildFormulation(**args)


def test_validation_error_is_a_value_error():
    with pytest.raises(ValueError):
        pf.validateInputs(1, [10], 1, [0.3], [[1, 2]])


def test_validate_normalizes_arrays():
    revenues, lam, orderings, x_initial, A_feas, b_feas = pf.validateInputs(
        2, [5, 8], 1, [1], [[2.0, 1.0, 3.0]])
    assert orderings.dtype.kind == "i"
    assert orderings.tolist() == [[2, 1, 3]]
    assert x_initial is None
    assert A_feas.shape == (0, 2) and b_feas.shape == (0,)


@pytest.mark.parametrize("lam, reason", [
    ([float("nan"), 0.5], "got non-finite"),
    ([float("inf"), 0.0], "got non-finite"),
    ([1.5, -0.5], "got negative"),
])
def test_lambda_error_names_the_problem(lam, reason):
    with pytest.raises(InputValidationError, match="finite and nonnegative") as excinfo:
        pf.validateInputs(2, [5, 8], 2, lam, [[1, 2, 3], [2, 1, 3]])
    assert reason in str(excinfo.value)
