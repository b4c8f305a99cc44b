#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Cary piano-roll text → midicsv event log.

Each space closes one quantized step.  Any other character c marks pitch
index ord(c) - 33 as sounding in the current step (kept only inside
[0, PITCH_RANGE)).  Line breaks are ignored.

Note events are edge-triggered against the previous step:

    silent → sounding   Note_on_c  at step * TIME_QUANTUM, velocity 127
    sounding → silent   Note_off_c at step * TIME_QUANTUM, velocity 0

reported as MIDI note pitch_index + 21 on channel 1, wrapped in a fixed
two-track header/footer.  Original tempo and velocities are not recovered.
"""

import argparse
import os
import sys
from functools import partial
from typing import List

import numpy as np

from cary.batch import collect_paths, run_batch
from cary.config import (
    DECODE_CHANNEL, DECODE_DIVISION, DECODE_PITCH_OFFSET, DECODE_TEMPO,
    DELIMITER, GLYPH_LO, NOTE_ON_VELOCITY, PITCH_RANGE, TIME_QUANTUM,
)
from cary.midicsv import NOTE_OFF_C, NOTE_ON_C, format_record

# -------------- PATHS --------------
INPUT_FOLDER  = "data/input/cary"
OUTPUT_FOLDER = "data/output/midicsv"
INPUT_SUFFIXES = (".cary",)

CONTENT_TRACK = 2
TRACK_TITLE   = "Main Track"
IGNORED_CHARS = "\r\n"


class ActiveRoll:
    """Boolean (step, pitch) matrix rebuilt from a Cary stream."""

    def __init__(self):
        self.active = np.zeros((1, PITCH_RANGE), dtype=bool)
        self.cursor = 0
        self.n_delimiters = 0

    def load(self, text: str) -> "ActiveRoll":
        self.n_delimiters = text.count(DELIMITER)
        self.active = np.zeros((self.n_delimiters + 1, PITCH_RANGE), dtype=bool)
        self.cursor = 0
        for c in text:
            if c == DELIMITER:
                self.cursor += 1
            elif c in IGNORED_CHARS:
                continue
            else:
                pitch = ord(c) - GLYPH_LO
                if 0 <= pitch < PITCH_RANGE:
                    self.active[self.cursor, pitch] = True
        # count the (possibly empty) run after the last delimiter as a step
        self.cursor += 1
        return self

    def _row(self, step: int) -> np.ndarray:
        if 0 <= step < self.active.shape[0]:
            return self.active[step]
        return np.zeros(PITCH_RANGE, dtype=bool)

    def emit_events(self) -> List[str]:
        lines = []
        # inclusive of the final cursor so notes sounding at the very end still get an off
        for step in range(self.cursor + 1):
            current = self._row(step)
            previous = self._row(step - 1)
            if not (current.any() or previous.any()):
                continue
            tick = step * TIME_QUANTUM
            for pitch in range(PITCH_RANGE):
                if current[pitch] and not previous[pitch]:
                    lines.append(format_record(CONTENT_TRACK, tick, NOTE_ON_C, DECODE_CHANNEL,
                                               pitch + DECODE_PITCH_OFFSET, NOTE_ON_VELOCITY))
                elif previous[pitch] and not current[pitch]:
                    lines.append(format_record(CONTENT_TRACK, tick, NOTE_OFF_C, DECODE_CHANNEL,
                                               pitch + DECODE_PITCH_OFFSET, 0))
        return lines

    def to_midicsv(self) -> List[str]:
        end_tick = self.cursor * TIME_QUANTUM
        return [
            format_record(0, 0, "Header", 1, 2, DECODE_DIVISION),
            format_record(1, 0, "Start_track"),
            format_record(1, 0, "Time_signature", 4, 2, 24, 8),
            format_record(1, 0, "Tempo", DECODE_TEMPO),
            format_record(1, end_tick, "End_track"),
            format_record(CONTENT_TRACK, 0, "Start_track"),
            format_record(CONTENT_TRACK, 0, "Title_t", f'"{TRACK_TITLE}"'),
            *self.emit_events(),
            format_record(CONTENT_TRACK, end_tick, "End_track"),
            format_record(0, 0, "End_of_file"),
        ]

    def to_cary(self) -> str:
        """Re-encode the matrix with the decoder's own mapping, one space per loaded delimiter."""
        parts = []
        for step in range(self.n_delimiters + 1):
            pitches = np.nonzero(self.active[step])[0]
            parts.append("".join(chr(GLYPH_LO + int(p)) for p in pitches))
            if step < self.n_delimiters:
                parts.append(DELIMITER)
        return "".join(parts)


def decode_text(text: str) -> List[str]:
    return ActiveRoll().load(text).to_midicsv()


def reconstructed_filename(filename: str) -> str:
    stem, _ = os.path.splitext(filename)
    return f"reconstructed_{stem}.csv"


def decode_file(path: str, out_dir: str) -> str:
    """Decode one .cary file; returns the written event log path."""
    with open(path, "r", encoding="ascii", errors="replace") as f:
        lines = decode_text(f.read())

    os.makedirs(out_dir, exist_ok=True)
    out_path = os.path.join(out_dir, reconstructed_filename(os.path.basename(path)))
    with open(out_path, "w", encoding="ascii") as f:
        f.write("\n".join(lines) + "\n")
    return out_path


def main():
    ap = argparse.ArgumentParser(description="Decode Cary piano-roll text back to midicsv event logs.")
    ap.add_argument("--input_folder", default=INPUT_FOLDER, help="Folder of .cary files.")
    ap.add_argument("--output_folder", default=OUTPUT_FOLDER, help="Folder for reconstructed event logs.")
    ap.add_argument("--workers", type=int, default=1, help="Files decoded in parallel (default: 1).")
    args = ap.parse_args()

    if not os.path.isdir(args.input_folder):
        print(f"ERROR: input folder not found: {args.input_folder}", file=sys.stderr)
        sys.exit(1)

    paths = collect_paths(args.input_folder, INPUT_SUFFIXES)
    if not paths:
        raise RuntimeError(f"No .cary files found in '{args.input_folder}'.")

    print(f"Decoding {len(paths)} files → {args.output_folder} (workers={args.workers})")
    job = partial(decode_file, out_dir=args.output_folder)
    report = run_batch(job, paths, workers=args.workers, desc="Decoding")

    print(f"Reconstructed {report.n_ok} files, {report.n_failed} failed.")
    print("Decompression complete!")


if __name__ == "__main__":
    main()
