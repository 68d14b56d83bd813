"""Tests for the keyboard layout model.

Tests cover:
- Layout.from_string / to_string: flat file format
- swap: involution, cross-layer consistency, bounds
- PositionMap: lookups and duplicates
- random_swap_positions / shuffle: valid, distinct, reproducible
- next_swap_indices / LayoutPermutations: bounded-depth enumeration
"""
import itertools
from math import comb

import numpy as np
import pytest

from keyboard_layout import (
    DEFAULT_LAYOUT, INDEX, INIT_LAYOUT, LEFT, HOME, NUM_KEYS, NUM_SWAPPABLE, PINKY,
    PINNED_KEY, REFERENCE_LAYOUTS, RIGHT, SHAKA_LAYOUT, TOP, UNASSIGNED, LOWER, UPPER, Layer,
    Layout, LayoutPermutations, count_permutations, first_swap_indices, next_swap_indices,
    random_swap_positions, swap_pairs, visualize_layout)

SHAKA_FILE = ("zgudb jrcf;\n"
              "hoetp vnsai\n"
              "q.ywk xlm,/\n"
              "ZGUDB JRCF:\n"
              "HOETP VNSAI\n"
              "Q>YWK XLM<?\n")

def differing_slots(a: Layout, b: Layout):
    return [i for i in range(NUM_KEYS) if a.lower.keys[i] != b.lower.keys[i]]

class TestFromString:
    def test_parses_file_format(self):
        layout = Layout.from_string(SHAKA_FILE)
        assert layout == SHAKA_LAYOUT

    def test_round_trip(self):
        for layout in REFERENCE_LAYOUTS.values():
            assert Layout.from_string(layout.to_string()) == layout

    def test_missing_characters_are_unassigned(self):
        layout = Layout.from_string("abcde fghij\n")
        assert layout.lower.keys[:10] == list("abcdefghij")
        assert all(c == UNASSIGNED for c in layout.lower.keys[10:])
        assert all(c == UNASSIGNED for c in layout.upper.keys)

    def test_upper_layer_offset(self):
        layout = Layout.from_string(SHAKA_FILE)
        assert layout.upper.keys[0] == 'Z'
        assert layout.upper.keys[29] == '?'

    def test_layer_size_checked(self):
        with pytest.raises(ValueError):
            Layer(list("abc"))

class TestSwap:
    def test_involution(self):
        for i, j in [(0, 29), (3, 17), (10, 11), (5, 5)]:
            layout = SHAKA_LAYOUT.copy()
            layout.swap(i, j)
            layout.swap(i, j)
            assert layout == SHAKA_LAYOUT

    def test_both_layers_move_together(self):
        layout = SHAKA_LAYOUT.copy()
        layout.swap(12, 27)
        assert layout.lower.keys[12] == 'm' and layout.upper.keys[12] == 'M'
        assert layout.lower.keys[27] == 'e' and layout.upper.keys[27] == 'E'
        assert differing_slots(layout, SHAKA_LAYOUT) == [12, 27]

    def test_shift_pairs_preserved_under_shuffle(self):
        rng = np.random.default_rng(7)
        layout = SHAKA_LAYOUT.copy()
        pairs = set(zip(SHAKA_LAYOUT.lower.keys, SHAKA_LAYOUT.upper.keys))
        layout.shuffle(50, rng)
        assert set(zip(layout.lower.keys, layout.upper.keys)) == pairs

    def test_out_of_range_fails_fast(self):
        layout = SHAKA_LAYOUT.copy()
        with pytest.raises(IndexError):
            layout.swap(0, NUM_KEYS)
        with pytest.raises(IndexError):
            layout.swap(-1, 3)

    def test_copy_is_independent(self):
        layout = SHAKA_LAYOUT.copy()
        layout.swap(0, 1)
        assert SHAKA_LAYOUT.lower.keys[0] == 'z'

class TestPositionMap:
    def test_round_trip(self):
        pos_map = SHAKA_LAYOUT.get_position_map()
        for i in range(NUM_KEYS):
            assert pos_map.get(SHAKA_LAYOUT.lower.keys[i]).pos == i
            assert pos_map.get(SHAKA_LAYOUT.upper.keys[i]).pos == i

    def test_key_attributes(self):
        pos_map = SHAKA_LAYOUT.get_position_map()
        h = pos_map.get('h')
        assert (h.pos, h.finger, h.hand, h.row, h.center) == (10, PINKY, LEFT, HOME, False)
        b = pos_map.get('b')
        assert (b.finger, b.hand, b.row, b.center) == (INDEX, LEFT, TOP, True)
        j = pos_map.get('J')
        assert (j.pos, j.hand, j.center) == (5, RIGHT, True)
        assert j.layer == UPPER and h.layer == LOWER

    def test_absent_characters_not_found(self):
        pos_map = SHAKA_LAYOUT.get_position_map()
        assert pos_map.get(' ') is None
        assert pos_map.get('7') is None
        assert pos_map.get('é') is None
        assert pos_map.get(UNASSIGNED) is None
        assert 'e' in pos_map and '1' not in pos_map

    def test_duplicates_resolve_to_upper_layer(self):
        lower = list(SHAKA_LAYOUT.lower.keys)
        upper = list(SHAKA_LAYOUT.upper.keys)
        upper[0] = 'e'
        pos_map = Layout(lower, upper).get_position_map()
        assert pos_map.get('e').pos == 0

    def test_non_ascii_keys_skipped(self):
        lower = list(SHAKA_LAYOUT.lower.keys)
        lower[0] = 'ü'
        pos_map = Layout(lower, SHAKA_LAYOUT.upper.keys).get_position_map()
        assert pos_map.get('ü') is None
        assert pos_map.get('Z').pos == 0

class TestRandomSwaps:
    def test_positions_valid_and_distinct(self):
        rng = np.random.default_rng(0)
        seen = set()
        for _ in range(2000):
            i, j = random_swap_positions(rng)
            assert i != j
            assert PINNED_KEY not in (i, j)
            assert 0 <= i < NUM_KEYS and 0 <= j < NUM_KEYS
            seen.update((i, j))
        assert seen == set(range(NUM_KEYS)) - {PINNED_KEY}

    def test_reproducible(self):
        a = SHAKA_LAYOUT.copy()
        b = SHAKA_LAYOUT.copy()
        a.shuffle(20, np.random.default_rng(42))
        b.shuffle(20, np.random.default_rng(42))
        assert a == b

    def test_pinned_key_never_moves(self):
        layout = SHAKA_LAYOUT.copy()
        layout.shuffle(500, np.random.default_rng(3))
        assert layout.lower.keys[PINNED_KEY] == 'h'

class TestOdometer:
    def test_first_state(self):
        assert first_swap_indices(2) == (0, 1, 2, 3)
        assert first_swap_indices(0) == ()
        assert first_swap_indices(15) is None
        with pytest.raises(ValueError):
            first_swap_indices(-1)

    def test_increments_rightmost(self):
        assert next_swap_indices((0, 1)) == (0, 2)
        assert next_swap_indices((3, 7, 9, 12)) == (3, 7, 9, 13)

    def test_cascades_left(self):
        assert next_swap_indices((0, 28)) == (1, 2)
        assert next_swap_indices((2, 5, 27, 28)) == (2, 6, 7, 8)

    def test_exhausted(self):
        assert next_swap_indices((27, 28)) is None
        assert next_swap_indices(()) is None

    def test_matches_lexicographic_combinations(self):
        n = 7
        state = first_swap_indices(2, n)
        produced = []
        while state is not None:
            produced.append(state)
            state = next_swap_indices(state, n)
        assert produced == list(itertools.combinations(range(n), 4))

    def test_swap_pairs_skip_pinned_key(self):
        assert swap_pairs((9, 10)) == [(9, 11)]
        assert swap_pairs((0, 1, 27, 28)) == [(0, 1), (28, 29)]

class TestLayoutPermutations:
    def test_depth_one(self):
        layouts = list(LayoutPermutations(SHAKA_LAYOUT, 1))
        assert len(layouts) == comb(NUM_SWAPPABLE, 2) == count_permutations(1)
        assert len(set(layouts)) == len(layouts)
        for layout in layouts:
            assert len(differing_slots(layout, SHAKA_LAYOUT)) == 2

    def test_depth_two(self):
        permutations = LayoutPermutations(SHAKA_LAYOUT, 2)
        assert permutations.total == comb(NUM_SWAPPABLE, 4)
        orig_lower = SHAKA_LAYOUT.lower.keys
        orig_upper = SHAKA_LAYOUT.upper.keys
        count = 0
        seen = set()
        state = first_swap_indices(2)
        for layout in permutations:
            count += 1
            seen.add(layout)
            diff = differing_slots(layout, SHAKA_LAYOUT)
            assert len(diff) == 4
            assert PINNED_KEY not in diff
            # The four changed slots are exactly two exchanged pairs
            pairs = swap_pairs(state)
            assert sorted(s for pair in pairs for s in pair) == diff
            for a, b in pairs:
                assert layout.lower.keys[a] == orig_lower[b]
                assert layout.lower.keys[b] == orig_lower[a]
                assert layout.upper.keys[a] == orig_upper[b]
                assert layout.upper.keys[b] == orig_upper[a]
            state = next_swap_indices(state)
        assert state is None
        assert count == comb(NUM_SWAPPABLE, 4)
        assert len(seen) == count

    def test_single_pass(self):
        permutations = LayoutPermutations(SHAKA_LAYOUT, 1)
        first = list(permutations)
        assert len(first) == count_permutations(1)
        assert list(permutations) == []

    def test_layouts_are_independent(self):
        permutations = LayoutPermutations(SHAKA_LAYOUT, 1)
        a = next(permutations)
        b = next(permutations)
        a.swap(0, 1)
        assert b != a
        assert SHAKA_LAYOUT == Layout.from_string(SHAKA_FILE)

    def test_depth_zero_yields_original(self):
        assert list(LayoutPermutations(SHAKA_LAYOUT, 0)) == [SHAKA_LAYOUT]

class TestBuiltinLayouts:
    SHIFTED = {';': ':', ',': '<', '.': '>', '/': '?'}

    @pytest.mark.parametrize("name", sorted(REFERENCE_LAYOUTS))
    def test_upper_layer_is_shifted_lower_layer(self, name):
        layout = REFERENCE_LAYOUTS[name]
        for lower, upper in zip(layout.lower.keys, layout.upper.keys):
            assert upper == self.SHIFTED.get(lower, lower.upper())

    @pytest.mark.parametrize("name", sorted(REFERENCE_LAYOUTS))
    def test_every_character_has_its_own_key(self, name):
        layout = REFERENCE_LAYOUTS[name]
        assert len(set(layout.lower.keys + layout.upper.keys)) == 2 * NUM_KEYS
        assert len(layout.get_position_map()) == 2 * NUM_KEYS

class TestRendering:
    def test_grid_text(self):
        lines = str(SHAKA_LAYOUT).splitlines()
        assert lines[0] == "z g u d b | j r c f ;"
        assert lines[1] == "h o e t p | v n s a i"

    def test_box_rendering(self):
        text = visualize_layout(INIT_LAYOUT, title="Initial")
        assert "Layout: Initial" in text
        assert len(text.splitlines()) == 9
        assert DEFAULT_LAYOUT is SHAKA_LAYOUT
