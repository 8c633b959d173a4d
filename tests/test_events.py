"""Tests for event files and the event registry."""

import numpy as np
import pytest

from pyvadose.boundaries.events import (
    EventFile,
    EventFileRegistry,
    PatchEventFile,
    SourceEventFile,
    set_event_file_registry,
)
from pyvadose.errors import ConfigurationError, MissingInputError


def _make_rain(**kwargs):
    return EventFile("rain", times=[0.0, 10.0], values=[1.0, 5.0], **kwargs)


def _write_csv(path, text):
    path.write_text(text)
    return path


class TestEventFileValue:
    def test_linear_interpolation(self):
        ef = _make_rain()
        assert ef.value(5.0)[0] == pytest.approx(3.0)

    def test_recorded_times_exact(self):
        ef = _make_rain()
        assert ef.value(0.0)[0] == 1.0
        assert ef.value(10.0)[0] == 5.0

    def test_hold_beyond_last_time(self):
        ef = _make_rain()
        assert ef.value(20.0)[0] == 5.0

    def test_first_value_before_start(self):
        ef = _make_rain()
        assert ef.value(-3.0)[0] == 1.0

    def test_beyond_zero(self):
        ef = _make_rain(beyond="zero")
        assert ef.value(20.0)[0] == 0.0
        assert ef.value(10.0)[0] == 5.0

    def test_beyond_error(self):
        ef = _make_rain(beyond="error")
        with pytest.raises(ConfigurationError, match="ends at"):
            ef.value(20.0)

    def test_step(self):
        ef = EventFile("rain", [0.0, 10.0, 20.0], [1.0, 5.0, 2.0], interpolation="step")
        assert ef.value(9.99)[0] == 1.0
        assert ef.value(10.0)[0] == 5.0
        assert ef.value(15.0)[0] == 5.0

    def test_multiple_columns(self):
        ef = EventFile("bc", [0.0, 10.0], [[0.0, 10.0], [1.0, 20.0]], labels=["a", "b"])
        np.testing.assert_allclose(ef.value(5.0), [0.5, 15.0])
        assert ef.column("b") == 1

    def test_unknown_column(self):
        ef = _make_rain()
        with pytest.raises(ConfigurationError, match="no column"):
            ef.column("top")

    def test_read_only(self):
        ef = _make_rain()
        with pytest.raises(ValueError):
            ef.values[0, 0] = 2.0


class TestEventFileValidation:
    def test_empty(self):
        with pytest.raises(ConfigurationError, match="no records"):
            EventFile("empty", [], [])

    def test_non_monotonic(self):
        with pytest.raises(ConfigurationError, match="strictly increasing"):
            EventFile("bad", [0.0, 10.0, 5.0], [1.0, 2.0, 3.0])

    def test_repeated_time(self):
        with pytest.raises(ConfigurationError, match="strictly increasing"):
            EventFile("bad", [0.0, 10.0, 10.0], [1.0, 2.0, 3.0])

    def test_shape_mismatch(self):
        with pytest.raises(ConfigurationError, match="3 times"):
            EventFile("bad", [0.0, 1.0, 2.0], [1.0, 2.0])

    def test_unknown_interpolation(self):
        with pytest.raises(ConfigurationError, match="interpolation"):
            _make_rain(interpolation="cubic")

    def test_unknown_beyond_policy(self):
        with pytest.raises(ConfigurationError, match="beyond"):
            _make_rain(beyond="extrapolate")


class TestEventFileAverage:
    def test_linear_average(self):
        ef = _make_rain()
        assert ef.average(0.0, 10.0)[0] == pytest.approx(3.0)

    def test_average_across_end(self):
        ef = _make_rain()
        # 10 s averaging 3.0, then 10 s held at 5.0
        assert ef.average(0.0, 20.0)[0] == pytest.approx(4.0)

    def test_step_average(self):
        ef = EventFile("rain", [0.0, 10.0, 20.0], [1.0, 5.0, 2.0], interpolation="step")
        assert ef.average(5.0, 15.0)[0] == pytest.approx(3.0)

    def test_short_pulse_not_missed(self):
        ef = EventFile(
            "pulse", [0.0, 4.0, 5.0, 100.0], [0.0, 10.0, 0.0, 0.0], interpolation="step"
        )
        assert ef.value(0.0)[0] == 0.0
        assert ef.value(10.0)[0] == 0.0
        assert ef.average(0.0, 10.0)[0] == pytest.approx(1.0)

    def test_empty_interval(self):
        ef = _make_rain()
        assert ef.average(5.0, 5.0)[0] == pytest.approx(3.0)

    def test_next_time(self):
        ef = _make_rain()
        assert ef.next_time(-1.0) == 0.0
        assert ef.next_time(0.0) == 10.0
        assert ef.next_time(10.0) is None


class TestEventFileCSV:
    def test_patch_event_file(self, tmp_path):
        path = _write_csv(tmp_path / "rain.csv", "time,top,bottom\n0,1e-6,0\n3600,5e-6,0\n")
        ef = PatchEventFile.from_csv(path)
        assert ef.name == "rain.csv"
        assert ef.labels == ["top", "bottom"]
        assert ef.patch_value("top", 1800.0) == pytest.approx(3e-6)
        assert ef.patch_average("top", 0.0, 3600.0) == pytest.approx(3e-6)

    def test_single_record(self, tmp_path):
        path = _write_csv(tmp_path / "rain.csv", "time,top\n0,2.0\n")
        ef = PatchEventFile.from_csv(path)
        assert ef.patch_value("top", 100.0) == 2.0

    def test_missing_file(self, tmp_path):
        with pytest.raises(MissingInputError, match="not found"):
            PatchEventFile.from_csv(tmp_path / "absent.csv")

    def test_bad_header(self, tmp_path):
        path = _write_csv(tmp_path / "rain.csv", "t,top\n0,1\n")
        with pytest.raises(ConfigurationError, match="header"):
            PatchEventFile.from_csv(path)

    def test_header_only(self, tmp_path):
        path = _write_csv(tmp_path / "rain.csv", "time,top\n")
        with pytest.raises(ConfigurationError, match="no records"):
            PatchEventFile.from_csv(path)

    def test_non_monotonic_file(self, tmp_path):
        path = _write_csv(tmp_path / "rain.csv", "time,top\n0,1\n10,2\n5,3\n")
        with pytest.raises(ConfigurationError, match="strictly increasing"):
            PatchEventFile.from_csv(path)

    def test_source_event_file(self, tmp_path):
        path = _write_csv(tmp_path / "wells.csv", "time,w1,w2\n0,1,2\n10,1,2\n")
        ef = SourceEventFile.from_csv(path, coordinates=[[0.5, 0.5], [1.5, 0.5]])
        assert ef.coordinates.shape == (2, 2)

    def test_source_coordinates_mismatch(self):
        with pytest.raises(ConfigurationError, match="coordinates"):
            SourceEventFile("w", [0.0], [[1.0, 2.0]], coordinates=[[0.0, 0.0]])


class TestEventFileRegistry:
    def test_register_and_get(self):
        registry = EventFileRegistry()
        ef = _make_rain()
        key = registry.register("h", ef)
        assert key == ("h", 0)
        assert registry.get(key) is ef
        assert registry.events_for("h") == (ef,)
        assert registry.events_for("C") == ()

    def test_same_object_registered_once(self):
        registry = EventFileRegistry()
        ef = _make_rain()
        k1 = registry.register("h", ef)
        k2 = registry.register("h", ef)
        assert k1 == k2
        assert len(registry) == 1

    def test_distinct_files_sharing_a_name(self):
        registry = EventFileRegistry()
        linear = _make_rain()
        step = _make_rain(interpolation="step")
        k1 = registry.register("h", linear)
        k2 = registry.register("h", step)
        assert k1 != k2
        assert registry.get(k1) is linear
        assert registry.get(k2) is step
        assert registry.get(k2).value(5.0)[0] == 1.0

    def test_fields_are_separate(self):
        registry = EventFileRegistry()
        registry.register("h", _make_rain())
        registry.register("C", _make_rain())
        assert registry.fields == ["h", "C"]
        assert len(registry) == 2

    def test_frozen(self):
        registry = EventFileRegistry()
        registry.register("h", _make_rain())
        registry.freeze()
        assert registry.frozen
        with pytest.raises(RuntimeError, match="frozen"):
            registry.register("h", EventFile("other", [0.0], [1.0]))
        assert len(registry.events_for("h")) == 1

    def test_next_event_time(self):
        registry = EventFileRegistry()
        registry.register("h", _make_rain())
        registry.register("C", EventFile("src", [0.0, 4.0, 12.0], [0.0, 1.0, 0.0]))
        assert registry.next_event_time(0.0) == 4.0
        assert registry.next_event_time(4.0) == 10.0
        assert registry.next_event_time(12.0) is None

    def test_clip_time_step(self):
        registry = EventFileRegistry()
        registry.register("h", _make_rain())
        assert registry.clip_time_step(8.0, 5.0) == pytest.approx(2.0)
        assert registry.clip_time_step(2.0, 5.0) == pytest.approx(5.0)
        assert registry.clip_time_step(12.0, 5.0) == pytest.approx(5.0)

    def test_empty_registry(self):
        registry = EventFileRegistry()
        assert registry.next_event_time(0.0) is None
        assert registry.clip_time_step(0.0, 1.0) == 1.0


class TestEventChannel:
    def test_channel_registers_under_field(self):
        registry = EventFileRegistry()
        channel = set_event_file_registry(registry, "h")
        key = channel.register(_make_rain())
        assert key == ("h", 0)
        assert channel.events() == registry.events_for("h")
