"""midicsv event records: parsing and formatting.

A record is one text line of comma-separated fields:

    track, time_ticks, kind, arg0, arg1, arg2, ...

Only the kinds the codec reacts to are parsed; everything else (and any
line carrying a quoted string) comes back as None.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

# -------------- KINDS --------------
HEADER     = "Header"
TEMPO      = "Tempo"
PROGRAM_C  = "Program_c"
NOTE_ON_C  = "Note_on_c"
NOTE_OFF_C = "Note_off_c"

NOTE_KINDS = (NOTE_ON_C, NOTE_OFF_C)

FIELD_SEP = ", "


@dataclass
class MidiCsvEvent:
    kind: str
    track: int
    time: float
    channel: Optional[int] = None
    pitch: Optional[int] = None
    velocity: Optional[int] = None
    program: Optional[int] = None
    tempo: Optional[float] = None
    division: Optional[float] = None

    @property
    def is_note(self) -> bool:
        return self.kind in NOTE_KINDS

    @property
    def is_note_on(self) -> bool:
        return self.kind == NOTE_ON_C and self.velocity >= 1

    @property
    def is_note_off(self) -> bool:
        # running-status files close notes with a zero-velocity note-on
        return self.kind == NOTE_OFF_C or (self.kind == NOTE_ON_C and self.velocity == 0)


def _split(line: str) -> List[str]:
    return [f.strip() for f in line.strip().split(",")]


def parse_line(line: str) -> Optional[MidiCsvEvent]:
    """Parse one record, or return None if it is malformed or irrelevant."""
    if '"' in line:
        return None
    fields = _split(line)
    if len(fields) < 3:
        return None
    kind = fields[2]
    try:
        track = int(fields[0])
        time = float(fields[1])

        if kind in NOTE_KINDS:
            if len(fields) < 6:
                return None
            return MidiCsvEvent(kind, track, time,
                                channel=int(fields[3]),
                                pitch=int(fields[4]),
                                velocity=int(fields[5]))

        if kind == PROGRAM_C:
            if len(fields) < 5:
                return None
            return MidiCsvEvent(kind, track, time,
                                channel=int(fields[3]),
                                program=int(fields[4]))

        if kind == TEMPO:
            if len(fields) < 4:
                return None
            division = float(fields[5]) if len(fields) >= 6 else None
            return MidiCsvEvent(kind, track, time,
                                tempo=float(fields[3]),
                                division=division)

        if kind == HEADER:
            if len(fields) < 6:
                return None
            return MidiCsvEvent(kind, track, time, division=float(fields[5]))
    except ValueError:
        return None
    return None


def iter_events(lines: Iterable[str]) -> Iterator[MidiCsvEvent]:
    for line in lines:
        ev = parse_line(line)
        if ev is not None:
            yield ev


def format_record(*fields) -> str:
    return FIELD_SEP.join(str(f) for f in fields)
