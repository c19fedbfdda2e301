"""Unit tests for the track planner."""

import pytest

from audiopass.config import PolicyConfig
from audiopass.core.classifier import StreamClassifier
from audiopass.core.decision import DecisionEngine
from audiopass.core.planner import TrackPlanner, priority_rank
from audiopass.models.plan import TrackOrigin


def plan_for(policy, probe):
    tracks = StreamClassifier().classify(probe)
    decision = DecisionEngine(policy).decide(tracks)
    return TrackPlanner(policy).plan(decision)


def probe_from_plan(plan):
    """Probe result the output file of a plan would produce."""
    streams = []
    for position, entry in enumerate(plan.entries):
        source = entry.source if entry.origin is TrackOrigin.EXISTING_COPY else None
        streams.append(
            {
                "index": position + 1,
                "codec_type": "audio",
                "codec_name": source.codec_name if source else entry.target_codec,
                "profile": source.profile if source else "",
                "channels": entry.channels,
                "tags": {"language": entry.language, "title": entry.title},
                "disposition": {"default": 1 if entry.is_default else 0},
            }
        )
    return {"streams": streams}


class TestPriorityRank:
    """Test priority_rank function."""

    def test_listed_and_unlisted(self):
        assert priority_rank("eng", ["eng", "fre"]) == 0
        assert priority_rank("fre", ["eng", "fre"]) == 1
        assert priority_rank("ger", ["eng", "fre"]) == 2


class TestTrackPlanner:
    """Test TrackPlanner class."""

    def test_dts_main_gets_recode_and_downmix(self, policy, audio_stream, probe_of):
        plan = plan_for(policy, probe_of(audio_stream(1, "dts", 6, "eng")))

        assert [e.origin for e in plan.entries] == [
            TrackOrigin.SYNTHESIZED_RECODE,
            TrackOrigin.EXISTING_COPY,
            TrackOrigin.SYNTHESIZED_DOWNMIX,
        ]
        assert plan.titles == [
            "English - DD+ - 5.1",
            "English Original - DTS - 5.1",
            "English - AAC - Stereo",
        ]
        assert [e.is_default for e in plan.entries] == [True, False, False]
        assert plan.entries[0].bitrate_kbps == 640
        assert plan.entries[2].bitrate_kbps == 256
        assert plan.no_op_required is False
        assert plan.notes[0] == "Output audio 0: English - DD+ - 5.1 (new)"

    def test_already_optimal_file_is_no_op(self, policy, audio_stream, probe_of):
        probe = probe_of(
            audio_stream(1, "eac3", 2, "eng", title="English Original - DD+ - Stereo", default=True)
        )

        plan = plan_for(policy, probe)

        assert plan.no_op_required is True
        assert plan.titles == ["English Original - DD+ - Stereo"]

    def test_commentary_is_never_original(self, policy, audio_stream, probe_of):
        probe = probe_of(
            audio_stream(1, "ac3", 6, "fre"),
            audio_stream(2, "ac3", 2, "fre", title="Commentary"),
        )

        plan = plan_for(policy, probe)

        assert plan.titles == [
            "French Original - DD - 5.1",
            "French Commentary - DD - Stereo",
        ]

    def test_atmos_label_not_duplicated(self, policy, audio_stream, probe_of):
        probe = probe_of(
            audio_stream(
                1, "eac3", 8, "eng", default=True, profile="Dolby Digital Plus + Dolby Atmos"
            )
        )

        plan = plan_for(policy, probe)

        assert plan.titles[0] == "English Original - DD+ Atmos - 7.1"
        assert plan.titles[-1] == "English - AAC - Stereo"

    def test_stable_sort_by_language_then_codec(self, audio_stream, probe_of):
        policy = PolicyConfig(enable_recode=False, enable_downmix=False)
        probe = probe_of(
            audio_stream(1, "ac3", 6, "eng", title="first"),
            audio_stream(2, "dts", 6, "fre"),
            audio_stream(3, "eac3", 6, "eng"),
            audio_stream(4, "aac", 2, "ger"),
            audio_stream(5, "ac3", 6, "eng", title="second"),
        )

        plan = plan_for(policy, probe)

        assert [e.source.source_index for e in plan.entries] == [2, 0, 4, 1, 3]
        originals = [t for t in plan.titles if " Original " in t]
        assert originals == [
            "English Original - DD+ - 5.1",
            "French Original - DTS - 5.1",
            "German Original - AAC - Stereo",
        ]
        assert plan.entries[0].is_default is True

    def test_untagged_track_inherits_main_language(self, policy, audio_stream, probe_of):
        probe = probe_of(
            audio_stream(1, "eac3", 6, "fre", default=True),
            audio_stream(2, "aac", 2, None),
        )

        plan = plan_for(policy, probe)

        assert [e.language for e in plan.entries] == ["fre", "fre"]
        assert plan.needs_downmix is False

    def test_recode_is_capped_at_six_channels(self, policy, audio_stream, probe_of):
        plan = plan_for(policy, probe_of(audio_stream(1, "dts", 8, "eng", profile="DTS-HD MA")))

        recode = plan.entries[0]
        assert recode.origin is TrackOrigin.SYNTHESIZED_RECODE
        assert recode.channels == 6
        assert recode.title == "English - DD+ - 5.1"
        assert plan.entries[1].title == "English Original - DTS-HD MA - 7.1"

    def test_exactly_one_default(self, policy, audio_stream, probe_of):
        probe = probe_of(
            audio_stream(1, "dts", 6, "fre", default=True),
            audio_stream(2, "ac3", 6, "eng", default=True),
        )

        plan = plan_for(policy, probe)

        assert sum(e.is_default for e in plan.entries) == 1
        assert plan.default_entry is plan.entries[0]

    @pytest.mark.parametrize(
        "streams",
        [
            [("dts", 6, "eng", True)],
            [("dts", 8, "eng", True), ("ac3", 6, "fre", False)],
            [("eac3", 6, "fre", False), ("aac", 2, "ger", False), ("dts", 6, "eng", True)],
            [("truehd", 8, "eng", True), ("ac3", 2, "eng", False)],
            [("dts", 6, None, False), ("ac3", 6, "fre", False)],
        ],
    )
    def test_second_pass_is_no_op(self, policy, audio_stream, probe_of, streams):
        probe = probe_of(
            *[
                audio_stream(i + 1, codec, channels, language, default=default)
                for i, (codec, channels, language, default) in enumerate(streams)
            ]
        )

        first = plan_for(policy, probe)
        second = plan_for(policy, probe_from_plan(first))

        assert second.no_op_required is True
        assert second.titles == first.titles
