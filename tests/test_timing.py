import pytest

from assessment_session.timing import QuestionTimingTracker


def test_single_visit_duration(clock):
    tracker = QuestionTimingTracker(clock)
    tracker.open("q1")
    clock.advance(12.5)
    entry = tracker.close("q1")
    assert entry.duration_seconds == 12.5
    assert entry.end_time == clock.now
    assert tracker.current_question_id is None


@pytest.mark.parametrize("visits", [[3.0], [3.0, 4.5], [1.0, 2.0, 7.25, 0.5]])
def test_revisits_accumulate(clock, visits):
    tracker = QuestionTimingTracker(clock)
    for seconds in visits:
        tracker.open("q1")
        clock.advance(seconds)
        tracker.close("q1")
        tracker.open("q2")
        clock.advance(10)
        tracker.close("q2")
    assert tracker.duration("q1") == pytest.approx(sum(visits))
    assert tracker.get("q1").visits == len(visits)
    assert tracker.duration("q2") == pytest.approx(10 * len(visits))


def test_open_closes_previous_entry(clock):
    tracker = QuestionTimingTracker(clock)
    tracker.open("q1")
    clock.advance(5)
    tracker.open("q2")
    assert tracker.duration("q1") == 5
    assert tracker.current_question_id == "q2"


def test_close_of_other_question_is_ignored(clock):
    tracker = QuestionTimingTracker(clock)
    tracker.open("q1")
    clock.advance(2)
    assert tracker.close("q2") is None
    assert tracker.current_question_id == "q1"
    assert tracker.close_current().duration_seconds == 2
    assert tracker.close_current() is None


def test_untouched_question_has_zero_duration(clock):
    assert QuestionTimingTracker(clock).duration("nope") == 0.0
