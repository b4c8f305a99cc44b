"""Tests for the Cary decoder and encode → decode round trips."""

import os

import numpy as np
import pytest

from cary.config import make_codec_config
from cary.decode import ActiveRoll, decode_file, decode_text, reconstructed_filename
from cary.encode import encode_lines
from cary.midicsv import iter_events

# ────────────────── Fixtures ──────────────────

A_MIDI = ord("A") - 33 + 21  # 53


def _note_lines(text: str):
    return ActiveRoll().load(text).emit_events()


def _schedule(lines):
    """(kind, pitch) sequence of the note events in a log."""
    return [(ev.kind, ev.pitch) for ev in iter_events(lines) if ev.is_note]


def _piano_log():
    """Three non-overlapping notes on distinct pitches, ticks on the default 40-tick grid."""
    return [
        "0, 0, Header, 1, 2, 384",
        "2, 0, Program_c, 0, 0",
        "2, 0, Note_on_c, 0, 60, 90",
        "2, 120, Note_off_c, 0, 60, 0",
        "2, 200, Note_on_c, 0, 64, 90",
        "2, 320, Note_on_c, 0, 64, 0",
        "2, 400, Note_on_c, 0, 67, 90",
        "2, 480, Note_off_c, 0, 67, 0",
    ]


# ────────────────── Load ──────────────────

class TestLoad:
    def test_delimiters_advance_cursor(self):
        roll = ActiveRoll().load("A A A ")
        assert roll.n_delimiters == 3
        assert roll.cursor == 4
        assert roll.active[:3, ord("A") - 33].all()
        assert not roll.active[3].any()

    def test_glyph_range(self):
        roll = ActiveRoll().load("!w x~ ")
        assert roll.active[0, 0]
        assert roll.active[0, 86]
        assert roll.active.sum() == 2

    def test_line_breaks_ignored(self):
        a = ActiveRoll().load("A \nB \r\nC ")
        b = ActiveRoll().load("A B C ")
        assert a.cursor == b.cursor
        assert np.array_equal(a.active, b.active)

    def test_reload_resets(self):
        roll = ActiveRoll().load("ABC ABC ABC ")
        roll.load("D ")
        assert roll.cursor == 2
        assert roll.active.sum() == 1

    def test_empty_stream(self):
        roll = ActiveRoll().load("")
        assert roll.cursor == 1
        assert roll.emit_events() == []


# ────────────────── Edge-triggered events ──────────────────

class TestEmitEvents:
    def test_single_note(self):
        assert _note_lines("A A A ") == [
            f"2, 0, Note_on_c, 1, {A_MIDI}, 127",
            f"2, 120, Note_off_c, 1, {A_MIDI}, 0",
        ]

    def test_gap_splits_notes(self):
        assert _note_lines("A  A ") == [
            f"2, 0, Note_on_c, 1, {A_MIDI}, 127",
            f"2, 40, Note_off_c, 1, {A_MIDI}, 0",
            f"2, 80, Note_on_c, 1, {A_MIDI}, 127",
            f"2, 120, Note_off_c, 1, {A_MIDI}, 0",
        ]

    def test_note_at_end_without_trailing_space_is_closed(self):
        assert _note_lines("A A") == [
            f"2, 0, Note_on_c, 1, {A_MIDI}, 127",
            f"2, 80, Note_off_c, 1, {A_MIDI}, 0",
        ]

    def test_pitch_order_within_step(self):
        lines = _note_lines("CA ")
        assert [ev.pitch for ev in iter_events(lines)] == [A_MIDI, A_MIDI + 2, A_MIDI, A_MIDI + 2]

    def test_on_off_pairing(self):
        lines = _note_lines("AB B AB  A")
        open_pitches = set()
        for ev in iter_events(lines):
            if ev.is_note_on:
                assert ev.pitch not in open_pitches
                open_pitches.add(ev.pitch)
            else:
                assert ev.pitch in open_pitches
                open_pitches.remove(ev.pitch)
        assert not open_pitches


class TestEnvelope:
    def test_header_and_footer(self):
        lines = decode_text("A A ")
        assert lines[0] == "0, 0, Header, 1, 2, 384"
        assert "1, 0, Tempo, 500000" in lines
        assert "1, 0, Time_signature, 4, 2, 24, 8" in lines
        assert lines[-2] == "2, 120, End_track"
        assert lines[-1] == "0, 0, End_of_file"

    def test_tracks_open_before_events(self):
        lines = decode_text("A ")
        first_note = next(i for i, l in enumerate(lines) if "Note_on_c" in l)
        assert lines.index("2, 0, Start_track") < first_note
        assert lines.index("1, 0, Start_track") < lines.index("2, 0, Start_track")


# ────────────────── Re-encoding ──────────────────

class TestToCary:
    @pytest.mark.parametrize("text", ["A A A ", "A  B!C  D ", "", "   ", "AB\nC ", "A A"])
    def test_delimiter_count_preserved(self, text):
        roll = ActiveRoll().load(text)
        assert roll.to_cary().count(" ") == text.count(" ")

    def test_decoder_mapping_round_trips(self):
        text = "!AB  w "
        assert ActiveRoll().load(text).to_cary() == text


# ────────────────── Encode → decode ──────────────────

class TestRoundTrip:
    def test_note_count_and_order(self):
        roll = encode_lines(_piano_log(), make_codec_config(max_steps=64))
        decoded = decode_text(roll.emit(0))
        src = _schedule(_piano_log())
        out = _schedule(decoded)
        assert len(out) == len(src) == 6
        assert [k for k, _ in out] == ["Note_on_c", "Note_off_c"] * 3

    def test_decoded_pitch_is_one_below_source(self):
        """Encode maps pitch p to 33 + p - 22; decode reads it back as p - 1."""
        roll = encode_lines(_piano_log(), make_codec_config(max_steps=64))
        out = _schedule(decode_text(roll.emit(0)))
        assert [p for _, p in out] == [59, 59, 63, 63, 66, 66]

    def test_step_times(self):
        roll = encode_lines(_piano_log(), make_codec_config(max_steps=64))
        times = [ev.time for ev in iter_events(decode_text(roll.emit(0))) if ev.is_note]
        assert times == [0, 120, 200, 320, 400, 480]


class TestDecodeFile:
    def test_filename(self):
        assert reconstructed_filename("song.csv_0.cary") == "reconstructed_song.csv_0.csv"

    def test_writes_event_log(self, tmp_path):
        src = tmp_path / "song.csv_0.cary"
        src.write_text("A A ")
        out_path = decode_file(str(src), str(tmp_path / "out"))
        assert os.path.basename(out_path) == "reconstructed_song.csv_0.csv"
        with open(out_path) as f:
            content = f.read().splitlines()
        assert content == decode_text("A A ")

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            decode_file(str(tmp_path / "nope.cary"), str(tmp_path / "out"))
