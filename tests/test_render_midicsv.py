"""Tests for rendering reconstructed event logs to MIDI."""

import os
import tempfile

import pretty_midi
import pytest

from cary.decode import decode_text
from cary.midicsv import iter_events
from scripts.render_midicsv import events_to_midi, render_file

SEC_PER_STEP = 40 * 0.5 / 384  # TIME_QUANTUM ticks at 120 bpm, division 384


def _decoded(text: str):
    return list(iter_events(decode_text(text)))


class TestEventsToMidi:
    def test_single_piano_track(self):
        pm = events_to_midi(_decoded("A A "))
        assert len(pm.instruments) == 1
        assert pm.instruments[0].program == 0
        assert not pm.instruments[0].is_drum

    def test_note_timing(self):
        pm = events_to_midi(_decoded("A A A "))
        (note,) = pm.instruments[0].notes
        assert note.pitch == ord("A") - 33 + 21
        assert note.start == pytest.approx(0.0)
        assert note.end == pytest.approx(3 * SEC_PER_STEP)

    def test_velocity_fixed(self):
        pm = events_to_midi(_decoded("AC C A AC "))
        for note in pm.instruments[0].notes:
            assert note.velocity == 127

    def test_gap_gives_two_notes(self):
        pm = events_to_midi(_decoded("A  A "))
        assert len(pm.instruments[0].notes) == 2

    def test_header_division_and_tempo_used(self):
        lines = [
            "0, 0, Header, 1, 2, 480",
            "1, 0, Tempo, 250000",
            "2, 0, Note_on_c, 1, 60, 100",
            "2, 480, Note_off_c, 1, 60, 0",
        ]
        (note,) = events_to_midi(iter_events(lines)).instruments[0].notes
        assert note.end == pytest.approx(0.25)
        assert note.velocity == 100

    def test_unclosed_note_ends_at_last_event(self):
        lines = [
            "2, 0, Note_on_c, 1, 60, 100",
            "2, 384, Note_on_c, 1, 62, 100",
            "2, 768, Note_off_c, 1, 62, 0",
        ]
        notes = events_to_midi(iter_events(lines)).instruments[0].notes
        assert [n.pitch for n in notes] == [60, 62]
        assert notes[0].end == pytest.approx(1.0)

    def test_stray_off_ignored(self):
        lines = ["2, 0, Note_off_c, 1, 60, 0"]
        assert events_to_midi(iter_events(lines)).instruments[0].notes == []


class TestRenderFile:
    def test_writes_midi_file(self):
        with tempfile.TemporaryDirectory() as d:
            src = os.path.join(d, "reconstructed_song.csv")
            with open(src, "w") as f:
                f.write("\n".join(decode_text("AC C A AC ")) + "\n")
            out_path, n_notes = render_file(src, d)
            assert os.path.basename(out_path) == "reconstructed_song.mid"
            assert os.path.getsize(out_path) > 0
            pm2 = pretty_midi.PrettyMIDI(out_path)
            assert sum(len(i.notes) for i in pm2.instruments) == n_notes == 4
