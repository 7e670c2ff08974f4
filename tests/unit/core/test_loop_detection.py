"""Unit tests for the repetition detector."""

import pytest

from taskloop.core.domain.loop_detection import DetectorConfig, RepetitionDetector


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def detector(clock):
    return RepetitionDetector(DetectorConfig(), clock=clock)


class TestExactRepeat:
    def test_threshold_minus_one_is_not_a_loop(self, detector):
        detector.add_and_check("shell", {"command": "ls"})
        result = detector.add_and_check("shell", {"command": "ls"})
        assert result.is_loop is False

    def test_threshold_identical_calls_is_a_loop(self, detector):
        for _ in range(2):
            detector.add_and_check("shell", {"command": "ls"})
        result = detector.add_and_check("shell", {"command": "ls"})

        assert result.is_loop is True
        assert result.loop_type == "exact_repeat"
        assert result.confidence == 95
        assert result.loop_length == 3
        assert result.loop_start == 0
        assert "shell" in result.description
        assert result.suggestion

    def test_parameter_key_order_is_ignored(self, detector):
        detector.record("edit", {"path": "a.py", "line": 1})
        detector.record("edit", {"line": 1, "path": "a.py"})
        result = detector.add_and_check("edit", {"path": "a.py", "line": 1})
        assert result.is_loop is True

    def test_old_calls_fall_out_of_the_window(self, detector, clock):
        detector.record("shell", {"command": "ls"})
        detector.record("shell", {"command": "ls"})
        clock.now += 31
        result = detector.add_and_check("shell", {"command": "ls"})
        assert result.is_loop is False


class TestAlternatingPattern:
    def test_threshold_minus_one_is_not_a_loop(self, detector):
        detector.record("read", {"path": "a"})
        detector.record("write", {"path": "a"})
        result = detector.add_and_check("read", {"path": "a"})
        assert result.is_loop is False

    def test_alternation_at_threshold_is_a_loop(self, detector):
        detector.record("read", {"path": "a"})
        detector.record("write", {"path": "a"})
        detector.record("read", {"path": "a"})
        result = detector.add_and_check("write", {"path": "a"})

        assert result.is_loop is True
        assert result.loop_type == "alternating_pattern"
        assert result.confidence == 85
        assert result.loop_length == 4

    @pytest.mark.parametrize("threshold", [7, 8])
    def test_long_alternation_below_custom_threshold(self, clock, threshold):
        detector = RepetitionDetector(
            DetectorConfig(alternating_pattern_threshold=threshold), clock=clock
        )
        calls = [("read", {"path": "a"}), ("write", {"path": "a"})]

        for i in range(threshold - 1):
            result = detector.add_and_check(*calls[i % 2])
            assert result.is_loop is False

        result = detector.add_and_check(*calls[(threshold - 1) % 2])
        assert result.is_loop is True
        assert result.loop_type == "alternating_pattern"
        assert result.loop_length == threshold


class TestParameterCycle:
    def test_oscillating_inputs_are_a_loop(self, detector):
        for path in ("a", "b", "c", "a", "b"):
            assert detector.add_and_check("read", {"path": path}).is_loop is False

        result = detector.add_and_check("read", {"path": "a"})

        assert result.is_loop is True
        assert result.loop_type == "parameter_cycle"
        assert result.confidence == 70

    def test_exploring_distinct_inputs_is_not_a_loop(self, detector):
        for i in range(8):
            result = detector.add_and_check("read", {"path": f"file_{i}.py"})
            assert result.is_loop is False


class TestToolSequence:
    def test_repeated_three_call_sequence_is_a_loop(self, detector):
        calls = [
            ("ls", {"dir": "."}),
            ("read", {"path": "a"}),
            ("edit", {"path": "a"}),
        ]
        for tool, args in calls:
            detector.record(tool, args)
        for tool, args in calls[:2]:
            detector.record(tool, args)
        result = detector.add_and_check(*calls[2])

        assert result.is_loop is True
        assert result.loop_type == "tool_sequence"
        assert result.loop_length == 3
        assert result.loop_start == 0
        assert "ls -> read -> edit" in result.description

    def test_too_short_history_is_not_checked(self, detector):
        for tool in ("ls", "read", "edit", "ls", "read"):
            result = detector.add_and_check(tool, {})
        assert result.is_loop is False


class TestDetectorState:
    def test_single_record_is_never_a_loop(self, detector):
        assert detector.add_and_check("shell", {}).is_loop is False

    def test_reset_clears_history(self, detector):
        detector.record("shell", {"command": "ls"})
        detector.record("shell", {"command": "ls"})
        detector.reset()

        assert detector.get_history() == []
        assert detector.add_and_check("shell", {"command": "ls"}).is_loop is False

    def test_stats(self, detector, clock):
        detector.record("read", {"path": "a"})
        clock.now += 2
        detector.record("read", {"path": "b"})
        detector.record("write", {"path": "b"})

        stats = detector.get_stats()
        assert stats.total_calls == 3
        assert stats.unique_tools == 2
        assert stats.most_used_tool == "read"
        assert stats.recent_timespan_ms == 2000

    def test_update_config(self, detector):
        config = detector.update_config(exact_repeat_threshold=2, max_history_size=5)

        assert config.exact_repeat_threshold == 2
        assert detector.get_config() is config
        assert detector.history.max_size == 5

        detector.record("shell", {})
        assert detector.add_and_check("shell", {}).is_loop is True

    @pytest.mark.parametrize(
        "changes",
        [
            {"exact_repeat_threshold": 1},
            {"max_history_size": 0},
            {"time_window_ms": 0},
        ],
    )
    def test_invalid_config_rejected(self, changes):
        with pytest.raises(ValueError):
            DetectorConfig(**changes)
