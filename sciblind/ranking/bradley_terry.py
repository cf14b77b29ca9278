"""Bradley-Terry maximum-likelihood ranking.

Estimates abilities pi_i with P(i beats j) = pi_i / (pi_i + pi_j) using the
minorization-maximization algorithm (Hunter, 2004). Unlike Elo the estimate
does not depend on vote order, and the Fisher information gives principled
standard errors.
"""

import math
from collections.abc import Iterable

import numpy as np
from pydantic import BaseModel

from sciblind.models import Comparison

# Ability assigned to items that never won
_NO_WIN_ABILITY = 1e-10
_LOG_FLOOR = 1e-20


class BTResult(BaseModel):
    """Bradley-Terry fit."""
    abilities: dict[str, float]  # log-scale, higher is better
    standard_errors: dict[str, float]
    iterations: int
    converged: bool
    log_likelihood: float


def estimate_bradley_terry(
    comparisons: Iterable[Comparison],
    max_iterations: int = 1000,
    tolerance: float = 1e-8,
) -> BTResult:
    """Fit Bradley-Terry abilities with the MM algorithm.

    Update for item i: pi_i <- W_i / sum_j n_ij / (pi_i + pi_j), where W_i is
    the item's total wins and n_ij the games between i and j. Abilities are
    renormalised to geometric mean 1 after every sweep.

    Args:
        comparisons: Valid comparisons
        max_iterations: Upper bound on MM sweeps
        tolerance: Convergence threshold on the largest normalised change

    Returns:
        BTResult with log-abilities, standard errors and convergence info
    """
    outcomes = [(c.winner_id, c.loser_id) for c in comparisons]

    ids = list(dict.fromkeys(item_id for outcome in outcomes for item_id in outcome))
    n = len(ids)

    if n < 2:
        return BTResult(
            abilities={item_id: 0.0 for item_id in ids},
            standard_errors={item_id: math.inf for item_id in ids},
            iterations=0,
            converged=True,
            log_likelihood=0.0,
        )

    index = {item_id: i for i, item_id in enumerate(ids)}
    wins = np.zeros(n)
    games = np.zeros((n, n))
    for winner_id, loser_id in outcomes:
        w, l = index[winner_id], index[loser_id]
        wins[w] += 1
        games[w, l] += 1
        games[l, w] += 1

    pi = np.ones(n)
    iterations = 0
    converged = False

    for iteration in range(1, max_iterations + 1):
        iterations = iteration

        denominator = (games / (pi[:, None] + pi[None, :])).sum(axis=1)
        updatable = (wins > 0) & (denominator > 0)

        new_pi = pi.copy()
        new_pi[wins == 0] = _NO_WIN_ABILITY
        new_pi[updatable] = wins[updatable] / denominator[updatable]

        max_change = float(np.max(np.abs(new_pi[updatable] - pi[updatable]), initial=0.0))

        norm = float(np.exp(np.mean(np.log(np.maximum(new_pi, _LOG_FLOOR)))))
        pi = new_pi / norm

        if max_change / norm < tolerance:
            converged = True
            break

    log_abilities = np.log(np.maximum(pi, _LOG_FLOOR))

    # Diagonal of the Fisher information: I_ii = sum_j n_ij * pi_j / (pi_i + pi_j)^2
    pair_sum = pi[:, None] + pi[None, :]
    fisher = (games * pi[None, :] / pair_sum ** 2).sum(axis=1)
    standard_errors = {}
    for item_id, i in index.items():
        if fisher[i] > 0:
            standard_errors[item_id] = float(1.0 / math.sqrt(fisher[i] * pi[i] ** 2))
        else:
            standard_errors[item_id] = math.inf

    log_likelihood = 0.0
    for winner_id, loser_id in outcomes:
        pi_w = pi[index[winner_id]]
        pi_l = pi[index[loser_id]]
        log_likelihood += math.log(pi_w) - math.log(pi_w + pi_l)

    return BTResult(
        abilities={item_id: float(log_abilities[i]) for item_id, i in index.items()},
        standard_errors=standard_errors,
        iterations=iterations,
        converged=converged,
        log_likelihood=log_likelihood,
    )


def bt_win_probability(ability_a: float, ability_b: float) -> float:
    """Probability that A beats B given log-abilities."""
    return 1.0 / (1.0 + math.exp(-(ability_a - ability_b)))


def bt_ability_to_elo_scale(ability: float) -> float:
    """Map a log-ability onto the Elo scale (400 points ~ 10:1 odds)."""
    return 1500.0 + ability * (400.0 / math.log(10))
