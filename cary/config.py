"""Codec constants and the per-run CodecConfig.

Encode side and decode side use different pitch offsets on purpose
(22/24 vs 21/87); files written by older runs depend on both.
"""

from dataclasses import dataclass, field
from typing import List, Tuple

# -------------- ENCODE: QUANTIZER --------------
DEFAULT_QUANTUM  = 40.0      # ticks per step until the first usable Tempo
TEMPO_SCALE      = 50000.0   # quantum = TEMPO_SCALE / tempo * division
NUM_CHANNELS     = 128
PIANO_PROGRAMS   = (0, 7)    # GM Acoustic Grand .. Clavinet, inclusive
MAX_TRACK        = 8

# -------------- ENCODE: PIANO ROLL --------------
MAX_STEPS        = 150000
PITCH_COUNT      = 110
MIN_PITCH        = 22        # pitch that maps to glyph 33 at transposition 0
PITCH_FLOOR      = 24        # lowest pitch ever written
TRANSPOSITIONS   = list(range(-6, 6))

# -------------- GLYPHS --------------
GLYPH_LO         = 33        # '!'
GLYPH_HI         = 126       # '~'
DELIMITER        = " "

# -------------- DECODE --------------
PITCH_RANGE      = 87
DECODE_PITCH_OFFSET = 21     # pitch_index + 21 = MIDI note
TIME_QUANTUM     = 40        # ticks per step in reconstructed logs
DECODE_DIVISION  = 384
DECODE_TEMPO     = 500000
NOTE_ON_VELOCITY = 127
DECODE_CHANNEL   = 1


@dataclass
class CodecConfig:
    max_steps: int = MAX_STEPS
    pitch_count: int = PITCH_COUNT
    min_pitch: int = MIN_PITCH
    pitch_floor: int = PITCH_FLOOR
    default_quantum: float = DEFAULT_QUANTUM
    max_track: int = MAX_TRACK
    piano_programs: Tuple[int, int] = PIANO_PROGRAMS
    transpositions: List[int] = field(default_factory=lambda: list(TRANSPOSITIONS))

    def is_piano_program(self, program: int) -> bool:
        lo, hi = self.piano_programs
        return lo <= program <= hi


def make_codec_config(**overrides) -> CodecConfig:
    """Build a CodecConfig, rejecting unknown keys and unusable sizes."""
    known = set(CodecConfig.__dataclass_fields__)
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unknown codec settings: {unknown}")
    config = CodecConfig(**overrides)
    if config.max_steps <= 0 or config.pitch_count <= 0:
        raise ValueError(f"max_steps and pitch_count must be positive, got "
                         f"{config.max_steps} x {config.pitch_count}")
    if config.default_quantum <= 0:
        raise ValueError(f"default_quantum must be positive, got {config.default_quantum}")
    return config
