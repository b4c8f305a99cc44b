#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Render reconstructed midicsv event logs to MIDI files for listening.

Input: event logs written by `python -m cary.decode` (or any midicsv
text).  Division comes from the Header record, tempo from the first
Tempo record (default 500000 µs/quarter).

Notes are paired per (channel, pitch): an on opens a note, the next off
(or zero-velocity on) closes it.  Notes still open at the end of the log
are closed at the last event time.  Output is a single piano track.
"""

import argparse
import glob
import os
import sys
from typing import Dict, Iterable, Tuple

import pretty_midi

from cary.config import DECODE_DIVISION, DECODE_TEMPO
from cary.midicsv import HEADER, TEMPO, MidiCsvEvent, iter_events

PIANO_PROGRAM = 0


def events_to_midi(events: Iterable[MidiCsvEvent]) -> pretty_midi.PrettyMIDI:
    """Convert parsed midicsv events to a one-instrument PrettyMIDI object."""
    events = list(events)
    division = DECODE_DIVISION
    tempo = DECODE_TEMPO
    for ev in events:
        if ev.kind == HEADER and ev.division:
            division = ev.division
            break
    for ev in events:
        if ev.kind == TEMPO and ev.tempo:
            tempo = ev.tempo
            break

    sec_per_tick = tempo / 1e6 / division
    bpm = 60e6 / tempo

    pm = pretty_midi.PrettyMIDI(initial_tempo=bpm, resolution=int(division))
    inst = pretty_midi.Instrument(program=PIANO_PROGRAM, is_drum=False, name="piano")

    open_notes: Dict[Tuple[int, int], Tuple[float, int]] = {}
    last_tick = 0.0
    for ev in sorted((e for e in events if e.is_note), key=lambda e: e.time):
        last_tick = max(last_tick, ev.time)
        key = (ev.channel, ev.pitch)
        if ev.is_note_on:
            if key in open_notes:
                continue
            open_notes[key] = (ev.time, ev.velocity)
        elif ev.is_note_off and key in open_notes:
            start_tick, vel = open_notes.pop(key)
            if ev.time > start_tick:
                inst.notes.append(pretty_midi.Note(
                    velocity=min(127, vel), pitch=ev.pitch,
                    start=start_tick * sec_per_tick, end=ev.time * sec_per_tick,
                ))

    # Close any note still open at end
    for (_, pitch), (start_tick, vel) in open_notes.items():
        if last_tick > start_tick:
            inst.notes.append(pretty_midi.Note(
                velocity=min(127, vel), pitch=pitch,
                start=start_tick * sec_per_tick, end=last_tick * sec_per_tick,
            ))

    inst.notes.sort(key=lambda n: (n.start, n.pitch))
    pm.instruments.append(inst)
    return pm


def render_file(path: str, out_dir: str) -> Tuple[str, int]:
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        pm = events_to_midi(iter_events(f))
    stem, _ = os.path.splitext(os.path.basename(path))
    out_path = os.path.join(out_dir, f"{stem}.mid")
    pm.write(out_path)
    return out_path, sum(len(i.notes) for i in pm.instruments)


def main():
    ap = argparse.ArgumentParser(description="Render midicsv event logs to MIDI files.")
    ap.add_argument("--input_folder", required=True, help="Folder of midicsv (*.csv) event logs")
    ap.add_argument("--out_dir", required=True, help="Output directory for MIDI files")
    ap.add_argument("--limit", type=int, default=0, help="Render at most N files (0 = all)")
    args = ap.parse_args()

    if not os.path.isdir(args.input_folder):
        print(f"ERROR: input folder not found: {args.input_folder}", file=sys.stderr)
        sys.exit(1)

    os.makedirs(args.out_dir, exist_ok=True)
    paths = sorted(glob.glob(os.path.join(args.input_folder, "*.csv")))
    if args.limit > 0:
        paths = paths[:args.limit]

    n_ok = 0
    for p in paths:
        try:
            out_path, n_notes = render_file(p, args.out_dir)
        except Exception as e:
            print(f"Skipping {os.path.basename(p)}: {e}")
            continue
        print(f"  {os.path.basename(out_path)}: {n_notes} notes")
        n_ok += 1

    print(f"Wrote {n_ok} MIDI files to {args.out_dir}")


if __name__ == "__main__":
    main()
