# quartad-layout-optimizer/quartads.py
"""
Corpus analysis: count windows of up to four consecutive typeable characters.

Quartads are recorded by the keys their characters occupy on a reference
layout, not by the characters themselves. Each key is coded as
`layer * 30 + position`, so a shifted character keeps its own identity. A
quartad list built once can then be re-scored against any candidate layout
by translating each reference code to the key that holds the same character
in the candidate.

A character the reference layout cannot type (space, newline, digits, ...)
breaks contiguity: the window is emptied and the next typeable character
starts a new one.
"""
from collections import Counter, deque
from typing import Dict, Iterator, Tuple

import numpy as np

from keyboard_layout import NUM_KEYS, UNASSIGNED, KeyPress, Layout, PositionMap

QUARTAD_LENGTH = 4
NUM_LAYERS = 2

def key_code(key: KeyPress) -> int:
    """Reference code of a key press: its grid position, offset by layer."""
    return key.layer * NUM_KEYS + key.pos

def read_corpus(path: str) -> str:
    """Read a UTF-8 corpus fully into memory."""
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()

class QuartadList:
    """
    Quartad signatures (tuples of 1-4 reference key codes) and their counts.

    `positions` holds one row per quartad, right-aligned and padded with -1,
    so column 3 is always the key being typed and columns 0-2 its preceding
    context. `frequencies` holds the matching counts as floats.
    """

    def __init__(self, counts: Dict[Tuple[int, ...], int], reference_map: PositionMap):
        self.counts = dict(counts)
        self.reference_map = reference_map

        n = len(self.counts)
        self.positions = np.full((n, QUARTAD_LENGTH), -1, dtype=np.int64)
        self.frequencies = np.zeros(n, dtype=np.float64)
        for k, (signature, count) in enumerate(self.counts.items()):
            self.positions[k, QUARTAD_LENGTH - len(signature):] = signature
            self.frequencies[k] = count

    def __len__(self) -> int:
        return len(self.counts)

    def __iter__(self) -> Iterator[Tuple[Tuple[int, ...], int]]:
        return iter(self.counts.items())

    @property
    def total_count(self) -> int:
        return sum(self.counts.values())

    def translation(self, layout: Layout) -> np.ndarray:
        """
        Map each reference key code to the grid position of the same character
        in `layout`, or -1 when `layout` cannot type it.
        """
        pos_map = layout.get_position_map()
        translate = np.full(NUM_LAYERS * NUM_KEYS, -1, dtype=np.int64)
        for code in range(NUM_LAYERS * NUM_KEYS):
            layer, pos = divmod(code, NUM_KEYS)
            kc = self.reference_map.slot_characters(pos)[layer]
            if kc == UNASSIGNED:
                continue
            key = pos_map.get(kc)
            if key is not None:
                translate[code] = key.pos
        return translate

    def characters(self, signature: Tuple[int, ...]) -> str:
        """Characters a signature was counted from."""
        return ''.join(self.reference_map.slot_characters(code % NUM_KEYS)[code // NUM_KEYS]
                       for code in signature)

def prepare_quartad_list(corpus: str, position_map: PositionMap) -> QuartadList:
    """
    Count every window of up to four consecutive typeable characters.

    Each typeable character closes exactly one window (the character and up
    to three typeable predecessors), so the counts sum to the number of
    typeable characters in the corpus.
    """
    quartads = Counter()
    window = deque(maxlen=QUARTAD_LENGTH)

    for c in corpus:
        key = position_map.get(c)
        if key is None:
            window.clear()
            continue
        window.append(key_code(key))
        quartads[tuple(window)] += 1

    return QuartadList(quartads, position_map)
