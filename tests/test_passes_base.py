"""Tests for the pass contract and SequentialPass."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from conftest import make_timeline, values
from musicbox.core.errors import ConfigurationError, ProcessingError
from musicbox.passes import (
    MergeKeyPass,
    NopPass,
    PitchOffsetPass,
    SequentialPass,
    SkipIntroPass,
)
from musicbox.passes.pitch import PitchOffsetConfig


class TestConfiguration:
    """Configs are validated once, at construction."""

    def test_keyword_arguments(self) -> None:
        pass_ = PitchOffsetPass(offset=3)
        assert pass_.config.offset == 3

    def test_mapping(self) -> None:
        assert PitchOffsetPass({"offset": -2}).config.offset == -2

    def test_config_instance_is_reused(self) -> None:
        config = PitchOffsetConfig(offset=5)
        assert PitchOffsetPass(config).config is config

    def test_keywords_override_config(self) -> None:
        assert PitchOffsetPass(PitchOffsetConfig(offset=5), offset=7).config.offset == 7

    def test_missing_required_field(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            PitchOffsetPass()
        assert "PitchOffsetPass" in str(exc_info.value)
        assert any("offset" in d for d in exc_info.value.details)

    def test_unknown_field(self) -> None:
        with pytest.raises(ConfigurationError):
            PitchOffsetPass(offset=1, octave=2)

    def test_out_of_bounds_value(self) -> None:
        with pytest.raises(ConfigurationError):
            MergeKeyPass(max_interval=-1)

    def test_config_is_frozen(self) -> None:
        pass_ = PitchOffsetPass(offset=1)
        with pytest.raises(ValidationError):
            pass_.config.offset = 2  # type: ignore[misc]


class TestNopPass:
    """NopPass returns its input unchanged."""

    def test_identity(self) -> None:
        data = make_timeline((60, 0))
        assert NopPass().run(data) is data
        assert NopPass().get_statistics() == {}


class TestSequentialPass:
    """Passes run in order; statistics and progress are collected."""

    def test_runs_in_order(self) -> None:
        pipeline = SequentialPass([PitchOffsetPass(offset=12), SkipIntroPass(max_intro_time=0)])
        result = pipeline.run(make_timeline((60, 1000), (62, 1500)))
        assert values(result) == [72, 74]
        assert [e.time for e in result] == [0, 500]

    def test_statistics_by_pass_name(self) -> None:
        pipeline = SequentialPass([PitchOffsetPass(offset=0), SkipIntroPass(max_intro_time=0)])
        pipeline.run(make_timeline((60, 300)))
        stats = pipeline.get_statistics()
        assert stats == {"PitchOffsetPass": {}, "SkipIntroPass": {"skipped_ms": 300}}

    def test_progress_reports_each_pass(self) -> None:
        calls: list[tuple[float, str]] = []
        pipeline = SequentialPass([PitchOffsetPass(offset=0), NopPass()])
        pipeline.run(make_timeline((60, 0)), lambda percent, text: calls.append((percent, text)))
        assert calls == [
            (0.0, PitchOffsetPass.description),
            (50.0, NopPass.description),
        ]

    def test_errors_propagate(self) -> None:
        pipeline = SequentialPass([NopPass(), SkipIntroPass()])
        with pytest.raises(ProcessingError):
            pipeline.run([])

    def test_mapping_config(self) -> None:
        nop = NopPass()
        pipeline = SequentialPass({"passes": [nop]})
        assert pipeline.passes == (nop,)

    def test_rejects_non_pass(self) -> None:
        with pytest.raises(ConfigurationError):
            SequentialPass(["not a pass"])

    def test_repr_names_the_pass(self) -> None:
        assert repr(PitchOffsetPass(offset=1)).startswith("PitchOffsetPass(")
