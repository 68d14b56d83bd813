# quartad-layout-optimizer/penalty.py
"""
Typing-effort penalty of a layout over a corpus's quartads.

Each quartad is scored on its last keystroke, in the context of up to three
preceding keystrokes. Keys are re-resolved against the candidate layout, so
one quartad list serves every layout of a search. The scalar penalty is the
weighted sum of all components divided by the corpus length.

Components and their weights come from the `penalties` section of the
configuration; see config.yaml for the default ergonomic model.
"""
from typing import Dict, NamedTuple, Optional

import numpy as np
from numba import jit

from keyboard_layout import (
    BOTTOM, HOME, INDEX, KEY_CENTER_COLUMN, KEY_FINGERS, KEY_HANDS, KEY_ROWS,
    MIDDLE, NUM_KEYS, PINKY, RING, TOP, Layout)
from quartads import QuartadList

#-----------------------------------------------------------------------------
# Penalty components
#-----------------------------------------------------------------------------
PENALTY_NAMES = (
    'base',
    'same_finger',
    'same_finger_center',
    'long_jump_hand',
    'long_jump',
    'long_jump_consecutive',
    'pinky_ring_twist',
    'roll_reversal',
    'same_hand',
    'hand_alternation',
    'roll_out',
    'roll_in',
    'long_jump_sandwich',
    'twist',
)
N_PENALTIES = len(PENALTY_NAMES)

BASE = 0
SAME_FINGER = 1
SAME_FINGER_CENTER = 2
LONG_JUMP_HAND = 3
LONG_JUMP = 4
LONG_JUMP_CONSECUTIVE = 5
PINKY_RING_TWIST = 6
ROLL_REVERSAL = 7
SAME_HAND = 8
HAND_ALTERNATION = 9
ROLL_OUT = 10
ROLL_IN = 11
LONG_JUMP_SANDWICH = 12
TWIST = 13

class Penalty(NamedTuple):
    total: float
    breakdown: Optional[Dict[str, Dict[str, float]]]

class PenaltyModel:
    """Component weights and per-key base penalties of an ergonomic model."""

    def __init__(self, weights: Dict[str, float], base_penalties):
        missing = [name for name in PENALTY_NAMES if name not in weights]
        if missing:
            raise ValueError(f"Missing penalty weights: {missing}")
        unknown = [name for name in weights if name not in PENALTY_NAMES]
        if unknown:
            raise ValueError(f"Unknown penalty weights: {unknown}")

        try:
            self.weights = np.array([float(weights[name]) for name in PENALTY_NAMES],
                                    dtype=np.float64)
            self.base_penalties = np.array(base_penalties, dtype=np.float64).ravel()
        except (TypeError, ValueError) as e:
            raise ValueError(f"Penalty weights must be numbers: {e}") from e

        if self.base_penalties.shape != (NUM_KEYS,):
            raise ValueError(
                f"base_penalties must hold {NUM_KEYS} values, got {self.base_penalties.size}")
        if not (np.all(np.isfinite(self.weights)) and np.all(np.isfinite(self.base_penalties))):
            raise ValueError("Penalty weights contain non-finite values")

    @classmethod
    def from_config(cls, config: dict) -> 'PenaltyModel':
        penalties = config['penalties']
        return cls(penalties['weights'], penalties['base_penalties'])

    def weight(self, name: str) -> float:
        return float(self.weights[PENALTY_NAMES.index(name)])

#-----------------------------------------------------------------------------
# Scoring kernels
#-----------------------------------------------------------------------------
@jit(nopython=True, fastmath=True)
def _add(component, amount, count, weights, totals, hits):
    totals[component] += weights[component] * amount * count
    hits[component] += count

@jit(nopython=True, fastmath=True)
def _is_long_jump(a, b, rows):
    return (rows[a] == TOP and rows[b] == BOTTOM) or (rows[a] == BOTTOM and rows[b] == TOP)

@jit(nopython=True, fastmath=True)
def _score_quartad(
    k: int,
    positions: np.ndarray,
    frequencies: np.ndarray,
    translate: np.ndarray,
    fingers: np.ndarray,
    hands: np.ndarray,
    rows: np.ndarray,
    centers: np.ndarray,
    base_penalties: np.ndarray,
    weights: np.ndarray,
    totals: np.ndarray,
    hits: np.ndarray
) -> None:
    """Accumulate the weighted components of quartad k into totals."""
    count = frequencies[k]

    curr = translate[positions[k, 3]]
    if curr < 0:
        return
    _add(BASE, base_penalties[curr], count, weights, totals, hits)

    #-------------------------------------------------------------------------
    # Pairs: current key and the key before it
    #-------------------------------------------------------------------------
    if positions[k, 2] < 0:
        return
    old1 = translate[positions[k, 2]]
    if old1 < 0:
        return

    same_hand1 = hands[curr] == hands[old1]
    if not same_hand1:
        _add(HAND_ALTERNATION, 1.0, count, weights, totals, hits)
    else:
        f_curr = fingers[curr]
        f_old1 = fingers[old1]

        if f_curr == f_old1 and curr != old1:
            _add(SAME_FINGER, 1.0, count, weights, totals, hits)
            n_center = centers[curr] + centers[old1]
            if n_center > 0:
                _add(SAME_FINGER_CENTER, n_center, count, weights, totals, hits)

        if _is_long_jump(curr, old1, rows):
            _add(LONG_JUMP_HAND, 1.0, count, weights, totals, hits)
            if f_curr == f_old1:
                _add(LONG_JUMP, 1.0, count, weights, totals, hits)
            elif abs(f_curr - f_old1) == 1:
                # Middle finger up and index finger down is a natural reach
                middle_top_index_bottom = (
                    (f_curr == MIDDLE and rows[curr] == TOP and f_old1 == INDEX) or
                    (f_old1 == MIDDLE and rows[old1] == TOP and f_curr == INDEX))
                if not middle_top_index_bottom:
                    _add(LONG_JUMP_CONSECUTIVE, 1.0, count, weights, totals, hits)

        if f_curr == PINKY and f_old1 == RING and rows[curr] < rows[old1]:
            _add(PINKY_RING_TWIST, 1.0, count, weights, totals, hits)
        elif f_curr == RING and f_old1 == PINKY and rows[old1] < rows[curr]:
            _add(PINKY_RING_TWIST, 1.0, count, weights, totals, hits)

        if f_curr > f_old1:
            _add(ROLL_OUT, 1.0, count, weights, totals, hits)
        elif f_curr < f_old1:
            _add(ROLL_IN, 1.0, count, weights, totals, hits)

    #-------------------------------------------------------------------------
    # Triads: current key and the two keys before it
    #-------------------------------------------------------------------------
    if positions[k, 1] < 0:
        return
    old2 = translate[positions[k, 1]]
    if old2 < 0:
        return

    same_hand2 = same_hand1 and hands[old1] == hands[old2]
    if same_hand2:
        f_curr = fingers[curr]
        f_old1 = fingers[old1]
        f_old2 = fingers[old2]

        if f_old1 == PINKY and ((f_old2 == RING and f_curr == MIDDLE) or
                                (f_old2 == MIDDLE and f_curr == RING)):
            _add(ROLL_REVERSAL, 1.0, count, weights, totals, hits)

        crosses_rows = (
            (rows[old2] == TOP and rows[old1] == HOME and rows[curr] == BOTTOM) or
            (rows[old2] == BOTTOM and rows[old1] == HOME and rows[curr] == TOP))
        one_way_roll = ((f_old2 < f_old1 and f_old1 < f_curr) or
                        (f_old2 > f_old1 and f_old1 > f_curr))
        if crosses_rows and one_way_roll:
            _add(TWIST, 1.0, count, weights, totals, hits)

    if (hands[curr] == hands[old2] and fingers[curr] == fingers[old2]
            and _is_long_jump(curr, old2, rows)):
        _add(LONG_JUMP_SANDWICH, 1.0, count, weights, totals, hits)

    #-------------------------------------------------------------------------
    # Quartads: current key and the three keys before it
    #-------------------------------------------------------------------------
    if positions[k, 0] < 0:
        return
    old3 = translate[positions[k, 0]]
    if old3 < 0:
        return

    if same_hand2 and hands[old2] == hands[old3]:
        _add(SAME_HAND, 1.0, count, weights, totals, hits)

@jit(nopython=True, fastmath=True)
def _penalty_totals(positions, frequencies, translate, fingers, hands, rows, centers,
                    base_penalties, weights):
    """Sum of weighted components (and their occurrence counts) over all quartads."""
    n_components = len(weights)
    totals = np.zeros(n_components, dtype=np.float64)
    hits = np.zeros(n_components, dtype=np.float64)
    for k in range(len(frequencies)):
        _score_quartad(k, positions, frequencies, translate, fingers, hands, rows,
                       centers, base_penalties, weights, totals, hits)
    return totals, hits

@jit(nopython=True, fastmath=True)
def _quartad_totals(positions, frequencies, translate, fingers, hands, rows, centers,
                    base_penalties, weights):
    """Weighted penalty of each quartad on its own."""
    n_components = len(weights)
    result = np.zeros(len(frequencies), dtype=np.float64)
    totals = np.zeros(n_components, dtype=np.float64)
    hits = np.zeros(n_components, dtype=np.float64)
    for k in range(len(frequencies)):
        totals[:] = 0.0
        _score_quartad(k, positions, frequencies, translate, fingers, hands, rows,
                       centers, base_penalties, weights, totals, hits)
        result[k] = np.sum(totals)
    return result

#-----------------------------------------------------------------------------
# Public scoring functions
#-----------------------------------------------------------------------------
def calculate_penalty(
    quartads: QuartadList,
    corpus_length: int,
    layout: Layout,
    model: PenaltyModel,
    verbose: bool = False
) -> Penalty:
    """
    Penalty of `layout` over the corpus quartads, normalized by corpus length.

    With verbose=True the result also carries a per-component breakdown;
    the scalar total is the same either way.
    """
    if corpus_length <= 0:
        raise ValueError(f"Corpus length must be positive, got {corpus_length}")

    translate = quartads.translation(layout)
    totals, hits = _penalty_totals(
        quartads.positions, quartads.frequencies, translate,
        KEY_FINGERS, KEY_HANDS, KEY_ROWS, KEY_CENTER_COLUMN,
        model.base_penalties, model.weights)

    total = float(np.sum(totals)) / corpus_length
    if not verbose:
        return Penalty(total, None)

    breakdown = {
        name: {'penalty': float(totals[i]) / corpus_length,
               'occurrences': float(hits[i])}
        for i, name in enumerate(PENALTY_NAMES)
    }
    return Penalty(total, breakdown)

def quartad_penalties(quartads: QuartadList, layout: Layout, model: PenaltyModel) -> np.ndarray:
    """Unnormalized penalty contributed by each quartad, in QuartadList order."""
    translate = quartads.translation(layout)
    return _quartad_totals(
        quartads.positions, quartads.frequencies, translate,
        KEY_FINGERS, KEY_HANDS, KEY_ROWS, KEY_CENTER_COLUMN,
        model.base_penalties, model.weights)

def score_layouts(
    quartads: QuartadList,
    corpus_length: int,
    layouts: Dict[str, Layout],
    model: PenaltyModel
) -> Dict[str, Penalty]:
    """Verbose penalties for a set of named layouts."""
    return {name: calculate_penalty(quartads, corpus_length, layout, model, verbose=True)
            for name, layout in layouts.items()}
