"""
Grading of submitted answers.

Each question type has its own matcher returning ``(is_correct,
correct_answer_text)``; the engine then awards all-or-nothing points and
derives the verdict under the survey's scoring mode.
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from assessment_session.constants import DEFAULT_PASSING_THRESHOLD, DEFAULT_QUESTION_POINTS
from assessment_session.models import (
    AnswerValue,
    AssessmentResult,
    MultipleChoiceQuestion,
    OtherQuestion,
    QuestionUnion,
    ScoringMode,
    ScoringOutcome,
    ScoringResult,
    ScoringSettings,
    ShortTextQuestion,
    SingleChoiceQuestion,
)

logger = logging.getLogger(__name__)

Match = Tuple[bool, str]


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _match_single_choice(question: SingleChoiceQuestion, answer: AnswerValue) -> Match:
    expected = question.correct_answer
    if _is_index(expected):
        text = question.option_text(expected)
        if not isinstance(answer, str):
            return False, text
        return question.option_index(answer) == expected, text
    # Legacy surveys store the correct label itself
    return answer == expected, str(expected)


def _match_multiple_choice(question: MultipleChoiceQuestion, answer: AnswerValue) -> Match:
    expected = question.correct_answer
    if not isinstance(expected, list):
        return answer == expected, str(expected)
    text = ", ".join(question.option_text(i) if _is_index(i) else str(i) for i in expected)
    if not all(_is_index(i) for i in expected):
        return False, text
    labels = answer if isinstance(answer, list) else [answer]
    # Labels that match no option are ignored
    chosen = {i for i in (question.option_index(label) for label in labels) if i != -1}
    return chosen == set(expected), text


def _match_short_text(question: ShortTextQuestion, answer: AnswerValue) -> Match:
    text = str(question.correct_answer)
    return isinstance(answer, str) and answer == text, text


def _match_other(question: OtherQuestion, answer: AnswerValue) -> Match:
    return answer == question.correct_answer, str(question.correct_answer)


def match_answer(question: QuestionUnion, answer: Optional[AnswerValue]) -> Match:
    """Decide whether ``answer`` is correct and render the expected answer.

    Unanswered questions, and questions without an answer key, are wrong
    and report no expected answer.
    """
    if question.correct_answer is None or answer is None:
        return False, ""
    if isinstance(question, SingleChoiceQuestion):
        return _match_single_choice(question, answer)
    if isinstance(question, MultipleChoiceQuestion):
        return _match_multiple_choice(question, answer)
    if isinstance(question, ShortTextQuestion):
        return _match_short_text(question, answer)
    if isinstance(question, OtherQuestion):
        return _match_other(question, answer)
    raise TypeError(f"Unsupported question model: {type(question).__name__}")


def display_answer(answer: Optional[AnswerValue]) -> str:
    if answer is None:
        return ""
    if isinstance(answer, list):
        return ", ".join(answer)
    return answer


def describe_scoring(mode: ScoringMode, threshold: float, max_possible_points: float) -> str:
    if mode == ScoringMode.PERCENTAGE:
        return f"Percentage scoring, max score 100, passing threshold {threshold:g}"
    return f"Accumulated scoring, max score {max_possible_points:g}, passing threshold {threshold:g}"


class ScoringEngine:
    """Grades a question list against an answer snapshot"""

    def __init__(self, settings: Optional[ScoringSettings] = None):
        self.settings = settings or ScoringSettings()

    @property
    def passing_threshold(self) -> float:
        threshold = self.settings.passing_threshold
        return DEFAULT_PASSING_THRESHOLD if threshold is None else threshold

    def max_points(self, question: QuestionUnion) -> float:
        if question.points is not None and question.points > 0:
            return question.points
        if self.settings.default_question_points is not None:
            return self.settings.default_question_points
        return DEFAULT_QUESTION_POINTS

    def grade(self, question: QuestionUnion, answer: Optional[AnswerValue]) -> AssessmentResult:
        is_correct, correct_text = match_answer(question, answer)
        max_points = self.max_points(question)
        return AssessmentResult(
            question_id=question.id,
            question_text=question.text,
            question_description=question.description,
            description_image=question.description_image,
            user_answer=display_answer(answer),
            correct_answer_text=correct_text,
            is_correct=is_correct,
            points_awarded=max_points if is_correct else 0,
            max_points=max_points,
        )

    def score(self, questions: Sequence[QuestionUnion], answers: Mapping[str, AnswerValue]) -> ScoringOutcome:
        results: List[AssessmentResult] = [self.grade(q, answers.get(q.id)) for q in questions]

        total_points = sum(r.points_awarded for r in results)
        max_possible_points = sum(r.max_points for r in results)
        correct_count = sum(1 for r in results if r.is_correct)
        wrong_count = len(results) - correct_count

        mode = self.settings.scoring_mode
        threshold = self.passing_threshold
        if mode == ScoringMode.PERCENTAGE:
            percentage = (total_points / max_possible_points * 100) if max_possible_points > 0 else 0
            display_score = round(percentage, 2)
            passed = percentage >= threshold
        else:
            display_score = total_points
            passed = total_points >= threshold

        score = ScoringResult(
            total_points=total_points,
            max_possible_points=max_possible_points,
            correct_count=correct_count,
            wrong_count=wrong_count,
            display_score=display_score,
            passed=passed,
            scoring_mode=mode,
            scoring_description=describe_scoring(mode, threshold, max_possible_points),
        )
        logger.info(
            f"Scored {len(results)} questions: {total_points:g}/{max_possible_points:g} "
            f"({mode.value}, display={display_score:g}, passed={passed})"
        )
        return ScoringOutcome(score=score, results=results)

    def visible(self, outcome: ScoringOutcome) -> Tuple[Optional[ScoringResult], List[AssessmentResult]]:
        """Apply the survey's visibility flags to a scoring outcome"""
        score = outcome.score if self.settings.show_score else None
        if not self.settings.show_score_breakdown:
            return score, []
        if self.settings.show_correct_answers:
            return score, list(outcome.results)
        return score, [r.model_copy(update={"correct_answer_text": ""}) for r in outcome.results]
