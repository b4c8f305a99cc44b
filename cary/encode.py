#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""midicsv event log → Cary piano-roll text (12 transpositions per file).

Pipeline per file:
  parse records → quantize + channel filter → fold into a note-state
  matrix (OFF / ON / SUSTAINED) → one text stream per transposition.

Cary text: for every step, one glyph per sounding pitch followed by a
single space.  Glyph for a pitch p at transposition t:

    chr(33 + p - MIN_PITCH + t)      kept only inside [33, 126]

Pitches below PITCH_FLOOR are never written.  Transpositions are
independent outputs (augmentation), written to <filename>_<t>.cary.
"""

import argparse
import bisect
import os
import sys
from functools import partial
from typing import Dict, Iterable, List, Optional

import numpy as np

from cary.batch import collect_paths, run_batch
from cary.config import CodecConfig, DELIMITER, GLYPH_HI, GLYPH_LO, make_codec_config
from cary.midicsv import iter_events
from cary.quantize import QuantizeFilter

# -------------- PATHS --------------
INPUT_FOLDER  = "data/input/midicsv"
OUTPUT_FOLDER = "data/input/cary"
INPUT_SUFFIXES = (".csv",)

# -------------- CELL STATES --------------
OFF       = 0
ON        = 1
SUSTAINED = 2


class PianoRoll:
    """Note-state matrix indexed by (step, pitch)."""

    def __init__(self, config: Optional[CodecConfig] = None):
        self.config = config or CodecConfig()
        self.matrix = np.zeros((self.config.max_steps, self.config.pitch_count), dtype=np.uint8)
        # pitch -> sorted steps of onsets not yet closed by an off
        self.open_onsets: Dict[int, List[int]] = {}
        self.n_steps = 0

    def _in_bounds(self, step: int, pitch: int) -> bool:
        return 0 <= step < self.config.max_steps and 0 <= pitch < self.config.pitch_count

    def note_on(self, step: int, pitch: int) -> None:
        if not self._in_bounds(step, pitch):
            return
        if self.matrix[step, pitch] != OFF:
            return
        self.matrix[step, pitch] = ON
        bisect.insort(self.open_onsets.setdefault(pitch, []), step)
        self.n_steps = max(self.n_steps, step + 1)

    def note_off(self, step: int, pitch: int) -> None:
        """Close the nearest open onset strictly before `step`.

        Every OFF cell from the onset up to (not including) `step` becomes
        SUSTAINED.  An off with nothing open before it changes nothing.
        """
        if not self._in_bounds(step, pitch):
            return
        onsets = self.open_onsets.get(pitch)
        if not onsets:
            return
        i = bisect.bisect_left(onsets, step) - 1
        if i < 0:
            return
        j = onsets.pop(i)
        col = self.matrix[j:step, pitch]
        col[col == OFF] = SUSTAINED
        self.n_steps = max(self.n_steps, step)

    def sounding(self, step: int, pitch: int) -> bool:
        if not self._in_bounds(step, pitch):
            return False
        return bool(self.matrix[step, pitch] != OFF)

    def _step_pitches(self) -> List[np.ndarray]:
        """Sounding pitches (>= floor) of every step in [0, n_steps)."""
        if self.n_steps == 0:
            return []
        floor = self.config.pitch_floor
        block = self.matrix[:self.n_steps, floor:] != OFF
        rows, cols = np.nonzero(block)
        bounds = np.searchsorted(rows, np.arange(1, self.n_steps))
        return [c + floor for c in np.split(cols, bounds)]

    def emit(self, transposition: int, step_pitches: Optional[List[np.ndarray]] = None) -> str:
        if step_pitches is None:
            step_pitches = self._step_pitches()
        base = GLYPH_LO - self.config.min_pitch + transposition
        parts = []
        for pitches in step_pitches:
            codes = pitches + base
            codes = codes[(codes >= GLYPH_LO) & (codes <= GLYPH_HI)]
            parts.append("".join(chr(c) for c in codes.tolist()))
            parts.append(DELIMITER)
        return "".join(parts)

    def emit_all(self) -> Dict[int, str]:
        step_pitches = self._step_pitches()
        return {t: self.emit(t, step_pitches) for t in self.config.transpositions}


def encode_lines(lines: Iterable[str], config: Optional[CodecConfig] = None) -> PianoRoll:
    """Fold one file's records into a fresh PianoRoll."""
    config = config or CodecConfig()
    qf = QuantizeFilter(config)
    roll = PianoRoll(config)
    for ev in iter_events(lines):
        hit = qf.apply(ev)
        if hit is None:
            continue
        step, pitch = hit
        if ev.is_note_on:
            roll.note_on(step, pitch)
        elif ev.is_note_off:
            roll.note_off(step, pitch)
    return roll


def cary_filename(filename: str, transposition: int) -> str:
    return f"{filename}_{transposition}.cary"


def encode_file(path: str, out_dir: str, config: Optional[CodecConfig] = None) -> List[str]:
    """Encode one event log; returns the written .cary paths."""
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        roll = encode_lines(f, config)

    os.makedirs(out_dir, exist_ok=True)
    filename = os.path.basename(path)
    written = []
    for t, text in roll.emit_all().items():
        out_path = os.path.join(out_dir, cary_filename(filename, t))
        with open(out_path, "w", encoding="ascii") as f:
            f.write(text)
        written.append(out_path)
    return written


def main():
    ap = argparse.ArgumentParser(description="Encode midicsv event logs to Cary piano-roll text.")
    ap.add_argument("--input_folder", default=INPUT_FOLDER, help="Folder of midicsv (*.csv) event logs.")
    ap.add_argument("--output_folder", default=OUTPUT_FOLDER, help="Folder for the .cary outputs.")
    ap.add_argument("--workers", type=int, default=1, help="Files encoded in parallel (default: 1).")
    ap.add_argument("--max_steps", type=int, default=CodecConfig.max_steps,
                    help="Quantized steps kept per file; later notes are dropped.")
    args = ap.parse_args()

    if not os.path.isdir(args.input_folder):
        print(f"ERROR: input folder not found: {args.input_folder}", file=sys.stderr)
        sys.exit(1)

    paths = collect_paths(args.input_folder, INPUT_SUFFIXES)
    if not paths:
        raise RuntimeError(f"No event logs found in '{args.input_folder}'.")

    config = make_codec_config(max_steps=args.max_steps)
    print(f"Encoding {len(paths)} files → {args.output_folder} "
          f"({len(config.transpositions)} transpositions each, workers={args.workers})")

    job = partial(encode_file, out_dir=args.output_folder, config=config)
    report = run_batch(job, paths, workers=args.workers, desc="Encoding")

    n_written = sum(len(v) for v in report.results.values())
    print(f"Encoded {report.n_ok} files ({n_written} .cary streams), {report.n_failed} failed.")


if __name__ == "__main__":
    main()
