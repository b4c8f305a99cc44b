"""Tempo-dependent time quantization and piano-family channel filtering.

One QuantizeFilter per file. Events are folded left to right: the tempo
and program state at the moment a note is read decide that note only.
"""

import math
from typing import Optional, Tuple

import numpy as np

from cary.config import CodecConfig, NUM_CHANNELS, TEMPO_SCALE
from cary.midicsv import MidiCsvEvent, PROGRAM_C, TEMPO


class QuantizeFilter:
    def __init__(self, config: Optional[CodecConfig] = None):
        self.config = config or CodecConfig()
        self.reset()

    def reset(self) -> None:
        self.quantum = float(self.config.default_quantum)
        self.allowed = np.ones(NUM_CHANNELS, dtype=bool)

    def quantize(self, time_ticks: float) -> Optional[int]:
        """Tick time -> step index, or None if outside the roll."""
        if not math.isfinite(time_ticks) or time_ticks < 0:
            return None
        step = int(math.floor(time_ticks / self.quantum))
        if step >= self.config.max_steps:
            return None
        return step

    def _on_tempo(self, ev: MidiCsvEvent) -> None:
        # a Tempo record without a division column leaves the quantum alone
        if ev.division is None or ev.tempo is None:
            return
        if ev.tempo <= 0:
            return
        quantum = (TEMPO_SCALE / ev.tempo) * ev.division
        if math.isfinite(quantum) and quantum > 0:
            self.quantum = quantum

    def _on_program(self, ev: MidiCsvEvent) -> None:
        if 0 <= ev.channel < NUM_CHANNELS:
            self.allowed[ev.channel] = self.config.is_piano_program(ev.program)

    def apply(self, ev: MidiCsvEvent) -> Optional[Tuple[int, int]]:
        """Update state from `ev`; return (step, pitch) if it is an admitted note."""
        if ev.kind == TEMPO:
            self._on_tempo(ev)
            return None
        if ev.kind == PROGRAM_C:
            self._on_program(ev)
            return None
        if not ev.is_note:
            return None

        if not (0 <= ev.channel < NUM_CHANNELS) or not self.allowed[ev.channel]:
            return None
        if ev.track > self.config.max_track:
            return None
        if not (0 <= ev.pitch < self.config.pitch_count):
            return None
        step = self.quantize(ev.time)
        if step is None:
            return None
        return step, ev.pitch
