import pytest

from assessment_session.models import ScoringMode, ScoringSettings
from assessment_session.scoring import ScoringEngine, display_answer, match_answer

from conftest import make_questions, sample_questions


def _engine(**settings) -> ScoringEngine:
    return ScoringEngine(ScoringSettings.model_validate(settings))


def test_single_choice_matches_by_option_index():
    q = make_questions([{"_id": "q", "type": "single_choice", "text": "?", "options": ["A", "B", "C"], "correctAnswer": 1}])[0]
    result = _engine().grade(q, "B")
    assert result.is_correct is True
    assert result.points_awarded == result.max_points == 1
    assert result.correct_answer_text == "B"
    assert _engine().grade(q, "A").is_correct is False


def test_single_choice_image_options_use_text_label():
    q = make_questions([{
        "_id": "q", "type": "single_choice", "text": "?",
        "options": [{"text": "Cat", "imageUrl": "https://img/cat.png"}, {"text": "Dog", "imageUrl": "https://img/dog.png"}],
        "correctAnswer": 0,
    }])[0]
    assert match_answer(q, "Cat") == (True, "Cat")
    assert match_answer(q, "Dog") == (False, "Cat")


def test_single_choice_falls_back_to_label_equality():
    q = make_questions([{"_id": "q", "type": "single_choice", "text": "?", "options": ["Yes", "No"], "correctAnswer": "No"}])[0]
    assert match_answer(q, "No") == (True, "No")
    assert match_answer(q, "Yes") == (False, "No")


def test_multiple_choice_is_order_independent():
    q = make_questions([{"_id": "q", "type": "multiple_choice", "text": "?", "options": ["A", "B", "C", "D"], "correctAnswer": [0, 2]}])[0]
    result = _engine().grade(q, ["C", "A"])
    assert result.is_correct is True
    assert result.correct_answer_text == "A, C"
    assert result.user_answer == "C, A"


@pytest.mark.parametrize("answer", [["A"], ["A", "B", "C"], ["B", "D"], [], ""])
def test_multiple_choice_requires_exact_set(answer):
    q = make_questions([{"_id": "q", "type": "multiple_choice", "text": "?", "options": ["A", "B", "C", "D"], "correctAnswer": [0, 2]}])[0]
    assert match_answer(q, answer)[0] is False


def test_short_text_is_exact_and_case_sensitive():
    q = make_questions([{"_id": "q", "type": "short_text", "text": "?", "correctAnswer": "Paris"}])[0]
    assert match_answer(q, "Paris")[0] is True
    assert match_answer(q, "paris")[0] is False
    assert match_answer(q, " Paris")[0] is False


def test_unknown_type_uses_strict_equality():
    q = make_questions([{"_id": "q", "type": "rating", "text": "?", "correctAnswer": "5"}])[0]
    assert match_answer(q, "5") == (True, "5")
    assert match_answer(q, ["5"])[0] is False


def test_unanswered_and_skipped_are_wrong():
    engine = _engine()
    questions = make_questions(sample_questions())
    outcome = engine.score(questions, {"q1": ""})
    assert outcome.score.correct_count == 0
    assert outcome.score.wrong_count == 3
    assert [r.user_answer for r in outcome.results] == ["", "", ""]
    assert [r.correct_answer_text for r in outcome.results] == ["B", "", ""]


def test_points_fall_back_to_default_then_one():
    questions = make_questions([
        {"_id": "a", "type": "short_text", "text": "?", "correctAnswer": "x", "points": 5},
        {"_id": "b", "type": "short_text", "text": "?", "correctAnswer": "x", "points": 0},
        {"_id": "c", "type": "short_text", "text": "?", "correctAnswer": "x"},
    ])
    assert [_engine(defaultQuestionPoints=3).max_points(q) for q in questions] == [5, 3, 3]
    assert [_engine().max_points(q) for q in questions] == [5, 1, 1]
    nested = ScoringSettings.model_validate({"customScoringRules": {"defaultQuestionPoints": 2}})
    assert ScoringEngine(nested).max_points(questions[2]) == 2


def test_percentage_mode_verdict():
    questions = make_questions([
        {"_id": f"q{i}", "type": "short_text", "text": "?", "correctAnswer": "ok", "points": 2} for i in range(4)
    ])
    answers = {"q0": "ok", "q1": "ok", "q2": "ok", "q3": "no"}
    score = _engine(scoringMode="percentage", passingThreshold=60).score(questions, answers).score
    assert score.total_points == 6
    assert score.max_possible_points == 8
    assert score.display_score == 75
    assert score.passed is True
    assert score.scoring_description == "Percentage scoring, max score 100, passing threshold 60"


def test_percentage_rounds_to_two_decimals():
    questions = make_questions([
        {"_id": f"q{i}", "type": "short_text", "text": "?", "correctAnswer": "ok"} for i in range(3)
    ])
    score = _engine().score(questions, {"q0": "ok"}).score
    assert score.display_score == 33.33
    assert score.passed is False


def test_accumulated_mode_compares_raw_points():
    questions = make_questions([
        {"_id": "a", "type": "short_text", "text": "?", "correctAnswer": "x", "points": 4},
        {"_id": "b", "type": "short_text", "text": "?", "correctAnswer": "x", "points": 6},
    ])
    engine = _engine(scoringMode="accumulated", passingThreshold=5)
    score = engine.score(questions, {"b": "x"}).score
    assert score.scoring_mode == ScoringMode.ACCUMULATED
    assert score.display_score == 6
    assert score.passed is True
    assert score.scoring_description == "Accumulated scoring, max score 10, passing threshold 5"


def test_empty_question_list_scores_zero():
    for threshold, expected in [(0, True), (60, False)]:
        score = _engine(passingThreshold=threshold).score([], {}).score
        assert score.display_score == 0
        assert score.passed is expected


def test_missing_threshold_uses_default():
    assert _engine().passing_threshold == 60


def test_scoring_twice_is_identical():
    engine = _engine()
    questions = make_questions(sample_questions())
    answers = {"q1": "B", "q2": ["A"], "q3": "Paris"}
    assert engine.score(questions, answers) == engine.score(questions, answers)


def test_visibility_flags():
    questions = make_questions(sample_questions())
    answers = {"q1": "B", "q2": ["A"], "q3": "paris"}

    hidden = _engine()
    score, results = hidden.visible(hidden.score(questions, answers))
    assert score is not None
    assert [r.correct_answer_text for r in results] == ["", "", ""]

    revealed = _engine(showCorrectAnswers=True)
    _, results = revealed.visible(revealed.score(questions, answers))
    assert [r.correct_answer_text for r in results] == ["B", "A, C", "Paris"]

    no_breakdown = _engine(showScoreBreakdown=False, showScore=False)
    score, results = no_breakdown.visible(no_breakdown.score(questions, answers))
    assert score is None
    assert results == []


def test_display_answer():
    assert display_answer(None) == ""
    assert display_answer(["a", "b"]) == "a, b"
    assert display_answer("x") == "x"


def test_odd_answer_key_shapes_fall_back_to_equality():
    questions = make_questions([
        {"_id": "s", "type": "short_text", "text": "?", "correctAnswer": 4},
        {"_id": "m", "type": "multiple_choice", "text": "?", "options": ["A", "B"], "correctAnswer": 0},
        {"_id": "l", "type": "multiple_choice", "text": "?", "options": ["A", "B"], "correctAnswer": ["A"]},
        {"_id": "f", "type": "single_choice", "text": "?", "options": ["A", "B"], "correctAnswer": 1.5},
    ])
    assert match_answer(questions[0], "4") == (True, "4")
    assert match_answer(questions[1], ["A"]) == (False, "0")
    assert match_answer(questions[2], ["A"]) == (False, "A")
    assert match_answer(questions[3], "B") == (False, "1.5")


def test_scalar_options_become_labels():
    q = make_questions([{"_id": "q", "type": "single_choice", "text": "?", "options": ["1", "2", 3], "correctAnswer": 2}])[0]
    assert q.options == ["1", "2", "3"]
    assert match_answer(q, "3") == (True, "3")
