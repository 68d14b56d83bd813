# quartad-layout-optimizer/keyboard_layout.py
"""
Keyboard layouts as two 30-key layers, with swap-based neighborhoods.

The physical grid has 3 rows x 2 hands x 5 columns. Slot i is the same
physical key in both layers (lower and shifted), so swapping a slot pair
always moves both layers' characters together:

     LEFT HAND     |    RIGHT HAND
   0  1  2  3  4   |   5  6  7  8  9
  10 11 12 13 14   |  15 16 17 18 19
  20 21 22 23 24   |  25 26 27 28 29

Slot 10 (left pinky, home row) is pinned; the other 29 slots can be swapped.
"""
from math import comb
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

import numpy as np

#-----------------------------------------------------------------------------
# Key grid
#-----------------------------------------------------------------------------
NUM_KEYS = 30
UNASSIGNED = '\0'

# Fingers are numbered from the inside of the hand outward
INDEX, MIDDLE, RING, PINKY = 0, 1, 2, 3
LEFT, RIGHT = 0, 1
TOP, HOME, BOTTOM = 0, 1, 2
LOWER, UPPER = 0, 1

FINGER_NAMES = ('index', 'middle', 'ring', 'pinky')
HAND_NAMES = ('left', 'right')
ROW_NAMES = ('top', 'home', 'bottom')

_ROW_FINGERS = [PINKY, RING, MIDDLE, INDEX, INDEX, INDEX, INDEX, MIDDLE, RING, PINKY]

KEY_FINGERS = np.array(_ROW_FINGERS * 3, dtype=np.int64)
KEY_HANDS = np.array(([LEFT] * 5 + [RIGHT] * 5) * 3, dtype=np.int64)
KEY_ROWS = np.array([TOP] * 10 + [HOME] * 10 + [BOTTOM] * 10, dtype=np.int64)
KEY_CENTER_COLUMN = np.array(([0] * 4 + [1, 1] + [0] * 4) * 3, dtype=np.int64)

# Compact swap index k -> grid slot k + SWAP_OFFSETS[k] (skips the pinned slot)
PINNED_KEY = 10
NUM_SWAPPABLE = 29
SWAP_OFFSETS = [0] * 10 + [1] * 19

# Layout file format: per layer, 3 lines of "xxxxx xxxxx\n" (12 characters)
LAYOUT_FILE_IDXS = [
    0,  1,  2,  3,  4,     6,  7,  8,  9,  10,
    12, 13, 14, 15, 16,    18, 19, 20, 21, 22,
    24, 25, 26, 27, 28,    30, 31, 32, 33, 34]
LAYER_FILE_LENGTH = 36

class KeyPress(NamedTuple):
    """Physical attributes of the key that types a character."""
    kc: str
    pos: int
    finger: int
    hand: int
    row: int
    center: bool
    layer: int = LOWER

#-----------------------------------------------------------------------------
# Layers and layouts
#-----------------------------------------------------------------------------
class Layer:
    """One character per key over the 30-slot grid."""

    def __init__(self, keys):
        keys = list(keys)
        if len(keys) != NUM_KEYS:
            raise ValueError(f"A layer needs exactly {NUM_KEYS} keys, got {len(keys)}")
        self.keys = keys

    def swap(self, i: int, j: int) -> None:
        if not (0 <= i < NUM_KEYS and 0 <= j < NUM_KEYS):
            raise IndexError(f"Swap positions out of range: ({i}, {j})")
        self.keys[i], self.keys[j] = self.keys[j], self.keys[i]

    def fill_position_map(self, entries: Dict[str, KeyPress], layer: int = LOWER) -> None:
        for i, c in enumerate(self.keys):
            if c == UNASSIGNED or ord(c) >= 128:
                continue
            entries[c] = KeyPress(
                kc=c,
                pos=i,
                finger=int(KEY_FINGERS[i]),
                hand=int(KEY_HANDS[i]),
                row=int(KEY_ROWS[i]),
                center=bool(KEY_CENTER_COLUMN[i]),
                layer=layer)

    def __eq__(self, other) -> bool:
        return isinstance(other, Layer) and self.keys == other.keys

    def __str__(self) -> str:
        keys = [c if c != UNASSIGNED else '_' for c in self.keys]
        lines = []
        for row in range(3):
            left = ' '.join(keys[row * 10:row * 10 + 5])
            right = ' '.join(keys[row * 10 + 5:row * 10 + 10])
            lines.append(f"{left} | {right}")
        return '\n'.join(lines)

class Layout:
    """A lower (base) layer and an upper (shifted) layer sharing swap positions."""

    def __init__(self, lower, upper):
        self.lower = lower if isinstance(lower, Layer) else Layer(lower)
        self.upper = upper if isinstance(upper, Layer) else Layer(upper)

    @classmethod
    def from_string(cls, s: str) -> 'Layout':
        """
        Build a layout from its flat file representation.

        The first 36 characters describe the lower layer and the next 36 the
        upper layer; characters are picked through LAYOUT_FILE_IDXS, so the
        column separator and line breaks are skipped. Missing characters and
        whitespace leave the slot unassigned.
        """
        def char_at(idx: int) -> str:
            if idx < len(s) and not s[idx].isspace():
                return s[idx]
            return UNASSIGNED

        lower = [char_at(idx) for idx in LAYOUT_FILE_IDXS]
        upper = [char_at(idx + LAYER_FILE_LENGTH) for idx in LAYOUT_FILE_IDXS]
        return cls(lower, upper)

    def to_string(self) -> str:
        """Render the layout in the file format read by from_string."""
        lines = []
        for layer in (self.lower, self.upper):
            keys = [c if c != UNASSIGNED else ' ' for c in layer.keys]
            for row in range(3):
                lines.append(''.join(keys[row * 10:row * 10 + 5]) + ' ' +
                             ''.join(keys[row * 10 + 5:row * 10 + 10]) + '\n')
        return ''.join(lines)

    def copy(self) -> 'Layout':
        return Layout(list(self.lower.keys), list(self.upper.keys))

    def swap(self, i: int, j: int) -> None:
        """Exchange the characters on keys i and j in both layers."""
        self.lower.swap(i, j)
        self.upper.swap(i, j)

    def shuffle(self, times: int, rng: np.random.Generator) -> None:
        """Apply `times` random swaps of swappable keys in place."""
        for _ in range(times):
            i, j = random_swap_positions(rng)
            self.swap(i, j)

    def get_position_map(self) -> 'PositionMap':
        return PositionMap(self)

    def key(self) -> Tuple[str, ...]:
        return tuple(self.lower.keys) + tuple(self.upper.keys)

    def __eq__(self, other) -> bool:
        return isinstance(other, Layout) and self.key() == other.key()

    def __hash__(self) -> int:
        return hash(self.key())

    def __str__(self) -> str:
        return str(self.lower)

    def __repr__(self) -> str:
        return f"Layout({self.to_string()!r})"

class PositionMap:
    """
    Read-only character -> KeyPress index of a layout.

    The lower layer is filled first, then the upper one, so a character that
    appears in both resolves to its upper-layer key. Non-ASCII characters and
    the unassigned marker are never found.
    """

    def __init__(self, layout: Layout):
        self._entries: Dict[str, KeyPress] = {}
        layout.lower.fill_position_map(self._entries, LOWER)
        layout.upper.fill_position_map(self._entries, UPPER)
        self._slots = list(zip(layout.lower.keys, layout.upper.keys))

    def get(self, kc: str) -> Optional[KeyPress]:
        return self._entries.get(kc)

    def slot_characters(self, pos: int) -> Tuple[str, str]:
        """Characters (lower, upper) the map was built from for key `pos`."""
        return self._slots[pos]

    def __contains__(self, kc: str) -> bool:
        return kc in self._entries

    def __len__(self) -> int:
        return len(self._entries)

def random_swap_positions(rng: np.random.Generator) -> Tuple[int, int]:
    """Pick two distinct swappable grid slots uniformly."""
    i = int(rng.integers(NUM_SWAPPABLE))
    j = int(rng.integers(NUM_SWAPPABLE - 1))
    if j >= i:
        j += 1
    return i + SWAP_OFFSETS[i], j + SWAP_OFFSETS[j]

#-----------------------------------------------------------------------------
# Bounded-depth neighborhood enumeration
#-----------------------------------------------------------------------------
def count_permutations(depth: int, n: int = NUM_SWAPPABLE) -> int:
    """Number of layouts LayoutPermutations yields at this depth."""
    if depth < 0:
        raise ValueError(f"Swap depth must be non-negative, got {depth}")
    return comb(n, 2 * depth)

def first_swap_indices(depth: int, n: int = NUM_SWAPPABLE) -> Optional[Tuple[int, ...]]:
    """Initial odometer state: the first 2*depth compact swap indices."""
    if depth < 0:
        raise ValueError(f"Swap depth must be non-negative, got {depth}")
    if 2 * depth > n:
        return None
    return tuple(range(2 * depth))

def next_swap_indices(indices: Tuple[int, ...], n: int = NUM_SWAPPABLE) -> Optional[Tuple[int, ...]]:
    """
    Advance the odometer to the next combination in lexicographic order.

    The rightmost index that still has room is incremented and every index to
    its right is reset to the consecutive values after it. Returns None once
    no index can advance.
    """
    size = len(indices)
    for i in range(size - 1, -1, -1):
        if indices[i] < n - (size - i):
            head = indices[i] + 1
            return indices[:i] + tuple(range(head, head + size - i))
    return None

def swap_pairs(indices: Tuple[int, ...]) -> List[Tuple[int, int]]:
    """Split compact indices into consecutive pairs of grid slots."""
    slots = [k + SWAP_OFFSETS[k] for k in indices]
    return list(zip(slots[0::2], slots[1::2]))

class LayoutPermutations:
    """
    Every layout reachable from `layout` by `depth` disjoint swaps.

    Each combination of 2*depth swappable keys is produced once, paired up in
    order, so the sequence holds exactly C(29, 2*depth) layouts. Iteration is
    single-pass; each produced layout is an independent copy.
    """

    def __init__(self, layout: Layout, depth: int):
        self.orig_layout = layout.copy()
        self.depth = depth
        self.total = count_permutations(depth)
        self._indices = first_swap_indices(depth)
        self._started = False

    def __iter__(self) -> Iterator[Layout]:
        return self

    def __next__(self) -> Layout:
        if self._started and self._indices is not None:
            self._indices = next_swap_indices(self._indices)
        self._started = True
        if self._indices is None:
            raise StopIteration

        layout = self.orig_layout.copy()
        for i, j in swap_pairs(self._indices):
            layout.swap(i, j)
        return layout

#-----------------------------------------------------------------------------
# Built-in layouts
#-----------------------------------------------------------------------------
SHAKA_LAYOUT = Layout(
    ['z', 'g', 'u', 'd', 'b',   'j', 'r', 'c', 'f', ';',
     'h', 'o', 'e', 't', 'p',   'v', 'n', 's', 'a', 'i',
     'q', '.', 'y', 'w', 'k',   'x', 'l', 'm', ',', '/'],
    ['Z', 'G', 'U', 'D', 'B',   'J', 'R', 'C', 'F', ':',
     'H', 'O', 'E', 'T', 'P',   'V', 'N', 'S', 'A', 'I',
     'Q', '>', 'Y', 'W', 'K',   'X', 'L', 'M', '<', '?'])

SHAKA2_LAYOUT = Layout(
    ['z', 'y', 'o', 'u', '/',   'g', 'd', 'l', 'f', 'j',
     'h', 'i', 'e', 'a', 'q',   'p', 't', 'n', 's', 'r',
     'v', 'k', ';', ',', '.',   'b', 'c', 'm', 'w', 'x'],
    ['Z', 'Y', 'O', 'U', '?',   'G', 'D', 'L', 'F', 'J',
     'H', 'I', 'E', 'A', 'Q',   'P', 'T', 'N', 'S', 'R',
     'V', 'K', ':', '<', '>',   'B', 'C', 'M', 'W', 'X'])

SHAKA3_LAYOUT = Layout(
    ['z', 'i', 'u', 'c', 'v',   'k', 'd', 'l', ',', '/',
     'h', 'o', 'e', 's', 'f',   'p', 't', 'n', 'a', 'r',
     ';', '.', 'y', 'w', 'j',   'b', 'g', 'm', 'q', 'x'],
    ['Z', 'I', 'U', 'C', 'V',   'K', 'D', 'L', '<', '?',
     'H', 'O', 'E', 'S', 'F',   'P', 'T', 'N', 'A', 'R',
     ':', '>', 'Y', 'W', 'J',   'B', 'G', 'M', 'Q', 'X'])

INIT_LAYOUT = Layout(
    ['j', 'c', 'y', 'f', 'k',   'n', 'u', ',', 'l', 'q',
     'r', 's', 't', 'h', 'd',   'm', 'e', 'a', 'i', 'o',
     '/', 'v', 'g', 'p', 'b',   'x', 'w', '.', ';', 'z'],
    ['J', 'C', 'Y', 'F', 'K',   'N', 'U', '<', 'L', 'Q',
     'R', 'S', 'T', 'H', 'D',   'M', 'E', 'A', 'I', 'O',
     '?', 'V', 'G', 'P', 'B',   'X', 'W', '>', ':', 'Z'])

DEFAULT_LAYOUT = SHAKA_LAYOUT

REFERENCE_LAYOUTS = {
    'SHAKA': SHAKA_LAYOUT,
    'SHAKA2': SHAKA2_LAYOUT,
    'SHAKA3': SHAKA3_LAYOUT,
    'INITIAL': INIT_LAYOUT,
}

#-----------------------------------------------------------------------------
# Visualizing functions
#-----------------------------------------------------------------------------
KEYBOARD_TEMPLATE = """╭───────────────────────────────────────────────────────────╮
│ Layout: {title:<50}│
├─────┬─────┬─────┬─────┬─────╥─────┬─────┬─────┬─────┬─────┤
│ {k0:^3} │ {k1:^3} │ {k2:^3} │ {k3:^3} │ {k4:^3} ║ {k5:^3} │ {k6:^3} │ {k7:^3} │ {k8:^3} │ {k9:^3} │
├─────┼─────┼─────┼─────┼─────╫─────┼─────┼─────┼─────┼─────┤
│ {k10:^3} │ {k11:^3} │ {k12:^3} │ {k13:^3} │ {k14:^3} ║ {k15:^3} │ {k16:^3} │ {k17:^3} │ {k18:^3} │ {k19:^3} │
├─────┼─────┼─────┼─────┼─────╫─────┼─────┼─────┼─────┼─────┤
│ {k20:^3} │ {k21:^3} │ {k22:^3} │ {k23:^3} │ {k24:^3} ║ {k25:^3} │ {k26:^3} │ {k27:^3} │ {k28:^3} │ {k29:^3} │
╰─────┴─────┴─────┴─────┴─────╨─────┴─────┴─────┴─────┴─────╯"""

def visualize_layout(layout: Layout, title: str = "Layout") -> str:
    """Return a boxed rendering of the lower layer of a layout."""
    layout_chars = {'title': title[:50]}
    for i, c in enumerate(layout.lower.keys):
        layout_chars[f"k{i}"] = c if c != UNASSIGNED else ' '
    return KEYBOARD_TEMPLATE.format(**layout_chars)
