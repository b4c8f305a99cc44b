"""Cary alphabet as one-hot vectors, for sequence models reading .cary text.

Index = ord(c) - ALPHABET_BASE.  The alphabet covers the step delimiter
(space) and every glyph the encoder can produce.
"""

import os
import sys
from typing import List, Sequence

import numpy as np
import torch
from torch.utils.data import Dataset

# -------------- ALPHABET --------------
ALPHABET_BASE = 32      # ' '
ALPHABET_SIZE = 94      # ' ' .. '}'

# -------------- WINDOWS --------------
WINDOW_SIZE   = 100
WINDOW_STRIDE = 1


def char_index(c: str) -> int:
    idx = ord(c) - ALPHABET_BASE
    if not (0 <= idx < ALPHABET_SIZE):
        raise ValueError(f"Invalid character for Cary format: {c!r}")
    return idx


def char_to_one_hot(c: str) -> np.ndarray:
    vec = np.zeros(ALPHABET_SIZE, dtype=np.float32)
    vec[char_index(c)] = 1.0
    return vec


def one_hot_to_char(vec) -> str:
    """Largest activation -> character (works on probabilities/logits too)."""
    vec = np.asarray(vec)
    if vec.shape != (ALPHABET_SIZE,):
        raise ValueError(f"Expected vector of shape ({ALPHABET_SIZE},), got {vec.shape}")
    return chr(ALPHABET_BASE + int(np.argmax(vec)))


def string_to_indices(text: str) -> List[int]:
    """Alphabet indices of `text`, silently skipping characters outside it."""
    out = []
    for c in text:
        idx = ord(c) - ALPHABET_BASE
        if 0 <= idx < ALPHABET_SIZE:
            out.append(idx)
    return out


def string_to_one_hot(text: str) -> np.ndarray:
    idx = np.asarray(string_to_indices(text), dtype=np.int64)
    out = np.zeros((len(idx), ALPHABET_SIZE), dtype=np.float32)
    out[np.arange(len(idx)), idx] = 1.0
    return out


def window_slices(seq: Sequence, size: int = WINDOW_SIZE, stride: int = WINDOW_STRIDE) -> List[Sequence]:
    """Full-length windows over seq; a sequence shorter than `size` gives none."""
    if size <= 0 or stride <= 0:
        raise ValueError(f"size and stride must be positive, got {size}, {stride}")
    return [seq[start:start + size] for start in range(0, len(seq) - size + 1, stride)]


class CaryWindowDataset(Dataset):
    """Next-character windows over .cary files.

    Item i is (x, y): x is (window, ALPHABET_SIZE) one-hot float32, y is
    (window,) int64 holding the index of the character after each input.
    """

    def __init__(self, paths: List[str], window: int = WINDOW_SIZE, stride: int = WINDOW_STRIDE):
        self.window = window
        self.samples: List[np.ndarray] = []
        for p in paths:
            if not os.path.isfile(p):
                print(f"ERROR: Cary file not found: {p}", file=sys.stderr)
                continue
            with open(p, "r", encoding="ascii", errors="replace") as f:
                idx = np.asarray(string_to_indices(f.read()), dtype=np.int64)
            # window + 1 so every input position has a target
            self.samples.extend(window_slices(idx, window + 1, stride))
        print(f"Loaded {len(self.samples)} windows from {len(paths)} files")

    def __len__(self) -> int:
        return len(self.samples)

    def __getitem__(self, i: int):
        seq = torch.from_numpy(self.samples[i])
        x = torch.nn.functional.one_hot(seq[:-1], num_classes=ALPHABET_SIZE).float()
        y = seq[1:].clone()
        return x, y
