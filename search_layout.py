# quartad-layout-optimizer/search_layout.py
"""
Layout search: simulated annealing and exhaustive bounded-depth refinement.

Both searches keep the best layouts they have seen in a bounded result set
sorted by ascending penalty. Annealing explores broadly by random swaps,
accepting worse layouts with a probability that falls as the temperature
decays; refinement enumerates every layout within a few swaps of the
current one and moves to the best strict improvement until none is left.

Randomness comes only from the numpy Generator passed in, so a run with a
fixed seed and schedule is reproducible.
"""
import math
import time
from typing import Callable, List, Optional, Tuple

import numpy as np
import psutil
from tqdm import tqdm

from keyboard_layout import Layout, LayoutPermutations
from penalty import PenaltyModel, calculate_penalty
from quartads import QuartadList

#-----------------------------------------------------------------------------
# Result set
#-----------------------------------------------------------------------------
class BestLayouts:
    """Top `size` distinct layouts seen so far, ascending by penalty."""

    def __init__(self, size: int):
        if size < 1:
            raise ValueError(f"Result set size must be at least 1, got {size}")
        self.size = size
        self.entries: List[Tuple[float, Layout]] = []

    def insert(self, layout: Layout, penalty: float) -> bool:
        """Add a layout unless it is already present or too costly. Returns True if kept."""
        if len(self.entries) >= self.size and penalty >= self.entries[-1][0]:
            return False
        if any(existing == layout for _, existing in self.entries):
            return False

        self.entries.append((penalty, layout.copy()))
        self.entries.sort(key=lambda x: x[0])  # stable: earlier layouts win ties
        if len(self.entries) > self.size:
            self.entries.pop()
        return True

    @property
    def best_penalty(self) -> float:
        return self.entries[0][0] if self.entries else math.inf

    def results(self) -> List[Tuple[Layout, float]]:
        return [(layout, penalty) for penalty, layout in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

#-----------------------------------------------------------------------------
# Annealing schedule
#-----------------------------------------------------------------------------
class AnnealingSchedule:
    """Exponential cooling: t(i) = t0 * exp(-i * k / iterations)."""

    def __init__(self, t0: float = 1.5, k: float = 10.0, p0: float = 1.0,
                 iterations: int = 15000, min_temperature: float = 0.0):
        if iterations < 1:
            raise ValueError(f"Annealing needs at least one iteration, got {iterations}")
        if t0 <= 0:
            raise ValueError(f"Initial temperature must be positive, got {t0}")
        self.t0 = float(t0)
        self.k = float(k)
        self.p0 = float(p0)
        self.iterations = int(iterations)
        self.min_temperature = float(min_temperature)

    @classmethod
    def from_config(cls, config: dict) -> 'AnnealingSchedule':
        annealing = config.get('annealing', {}) or {}
        return cls(**annealing)

    def temperature(self, i: int) -> float:
        return self.t0 * math.exp(-i * self.k / self.iterations)

def accept_transition(dp: float, temperature: float, p0: float, rng: np.random.Generator) -> bool:
    """Metropolis criterion: always take improvements, sometimes take worse layouts."""
    if dp < 0.0:
        return True
    p = p0 * math.exp(-dp / temperature)
    return p > rng.random()

def update_progress_bar(pbar, start_time: float, current_penalty: float, best_penalty: float,
                        temperature: Optional[float] = None) -> None:
    """Update progress bar with search statistics."""
    elapsed = time.time() - start_time
    postfix = {
        'Current': f"{current_penalty:.4f}",
        'Best': f"{best_penalty:.4f}",
    }
    if temperature is not None:
        postfix['Temp'] = f"{temperature:.4f}"
    if elapsed > 0:
        postfix['Layouts/sec'] = f"{pbar.n / elapsed:,.0f}"
    postfix['Memory'] = f"{psutil.Process().memory_info().rss/1e9:.1f}GB"
    pbar.set_postfix(postfix)

#-----------------------------------------------------------------------------
# Simulated annealing
#-----------------------------------------------------------------------------
def simulate(
    quartads: QuartadList,
    corpus_length: int,
    layout: Layout,
    model: PenaltyModel,
    rng: np.random.Generator,
    schedule: Optional[AnnealingSchedule] = None,
    top: int = 1,
    swaps: int = 3,
    debug: bool = False,
    progress: bool = True,
    should_stop: Optional[Callable[[], bool]] = None
) -> List[Tuple[Layout, float]]:
    """
    Anneal from `layout` and return the `top` best layouts seen.

    Each iteration applies 1..swaps random swaps to the accepted layout and
    scores the result. Every candidate is offered to the result set whether
    or not it is accepted as the new current layout. The run ends after the
    schedule's iterations, when the temperature falls below its floor, or
    when `should_stop` returns True.
    """
    if swaps < 1:
        raise ValueError(f"Swaps per iteration must be at least 1, got {swaps}")
    if schedule is None:
        schedule = AnnealingSchedule()

    best_layouts = BestLayouts(top)
    accepted_layout = layout.copy()
    accepted_penalty = calculate_penalty(quartads, corpus_length, accepted_layout, model).total
    best_layouts.insert(accepted_layout, accepted_penalty)

    if debug:
        print("Initial layout:")
        print(accepted_layout)
        print(f"Penalty: {accepted_penalty:.6f}")

    start_time = time.time()
    with tqdm(total=schedule.iterations, desc="Annealing", unit='iters',
              disable=not progress) as pbar:
        for i in range(1, schedule.iterations + 1):
            temperature = schedule.temperature(i)
            if temperature < schedule.min_temperature:
                break
            if should_stop is not None and should_stop():
                break

            candidate = accepted_layout.copy()
            candidate.shuffle(int(rng.integers(1, swaps + 1)), rng)
            candidate_penalty = calculate_penalty(quartads, corpus_length, candidate, model).total

            best_layouts.insert(candidate, candidate_penalty)

            accepted = accept_transition(candidate_penalty - accepted_penalty, temperature,
                                         schedule.p0, rng)
            if accepted:
                accepted_layout = candidate
                accepted_penalty = candidate_penalty

            if debug:
                tqdm.write(f"Iteration {i}: {candidate_penalty:.6f} "
                           f"(T={temperature:.6f}, {'accepted' if accepted else 'rejected'}, "
                           f"current={accepted_penalty:.6f}, best={best_layouts.best_penalty:.6f})")

            pbar.update(1)
            if progress and i % 500 == 0:
                update_progress_bar(pbar, start_time, accepted_penalty,
                                    best_layouts.best_penalty, temperature)

    return best_layouts.results()

#-----------------------------------------------------------------------------
# Exhaustive refinement
#-----------------------------------------------------------------------------
def refine(
    quartads: QuartadList,
    corpus_length: int,
    layout: Layout,
    model: PenaltyModel,
    top: int = 1,
    max_depth: int = 3,
    debug: bool = False,
    progress: bool = True,
    should_stop: Optional[Callable[[], bool]] = None
) -> List[Tuple[Layout, float]]:
    """
    Improve `layout` by exhaustive search over its d-swap neighborhoods.

    Starting at depth 1, every layout within `depth` disjoint swaps of the
    current layout is scored. When the best of them strictly improves on the
    current layout the search moves there and restarts at depth 1; otherwise
    the depth grows until `max_depth` is exhausted. The current layout at the
    end is a local optimum for every depth up to `max_depth`.
    """
    if max_depth < 1:
        raise ValueError(f"Refine depth must be at least 1, got {max_depth}")

    best_layouts = BestLayouts(top)
    current_layout = layout.copy()
    current_penalty = calculate_penalty(quartads, corpus_length, current_layout, model).total
    best_layouts.insert(current_layout, current_penalty)

    if debug:
        print("Initial layout:")
        print(current_layout)
        print(f"Penalty: {current_penalty:.6f}")

    depth = 1
    stopped = False
    while depth <= max_depth and not stopped:
        permutations = LayoutPermutations(current_layout, depth)
        best_neighbor = None
        best_neighbor_penalty = current_penalty

        start_time = time.time()
        with tqdm(total=permutations.total, desc=f"Refine depth {depth}", unit='layouts',
                  disable=not progress) as pbar:
            for i, candidate in enumerate(permutations):
                if should_stop is not None and should_stop():
                    stopped = True
                    break

                penalty = calculate_penalty(quartads, corpus_length, candidate, model).total
                best_layouts.insert(candidate, penalty)
                if penalty < best_neighbor_penalty:
                    best_neighbor = candidate
                    best_neighbor_penalty = penalty

                if debug:
                    tqdm.write(f"Depth {depth}, candidate {i}: {penalty:.6f}")

                pbar.update(1)
                if progress and (i + 1) % 1000 == 0:
                    update_progress_bar(pbar, start_time, current_penalty,
                                        best_layouts.best_penalty)

        if best_neighbor is not None:
            current_layout = best_neighbor
            current_penalty = best_neighbor_penalty
            depth = 1
            if debug:
                print(f"Improved to {current_penalty:.6f}:")
                print(current_layout)
        else:
            depth += 1

    return best_layouts.results()
