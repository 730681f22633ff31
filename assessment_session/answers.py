from typing import Dict, Iterable, List, Optional

from assessment_session.models import AnswerValue, QuestionUnion

SKIPPED = ""


class AnswerStore:
    """Candidate answers keyed by question id.

    ``get`` returns None for a question the candidate never touched; an empty
    string is an explicit skip.
    """

    def __init__(self):
        self._answers: Dict[str, AnswerValue] = {}

    def __len__(self) -> int:
        return len(self._answers)

    def __contains__(self, question_id: str) -> bool:
        return question_id in self._answers

    def set_answer(self, question_id: str, value: AnswerValue) -> None:
        if isinstance(value, (list, tuple)):
            value = list(value)
        elif not isinstance(value, str):
            raise TypeError(f"Answer for {question_id} must be a string or a list of strings")
        self._answers[question_id] = value

    def mark_skipped_if_unset(self, question_id: str) -> bool:
        """Record a skip unless the question already has an answer"""
        if question_id in self._answers:
            return False
        self._answers[question_id] = SKIPPED
        return True

    def toggle_choice(self, question_id: str, label: str) -> List[str]:
        """Add or remove one label of a multiple-choice answer, keeping selection order"""
        current = self._answers.get(question_id)
        selected = list(current) if isinstance(current, list) else []
        if label in selected:
            selected.remove(label)
        else:
            selected.append(label)
        self._answers[question_id] = selected
        return list(selected)

    def get(self, question_id: str) -> Optional[AnswerValue]:
        value = self._answers.get(question_id)
        return list(value) if isinstance(value, list) else value

    def is_skipped(self, question_id: str) -> bool:
        return self._answers.get(question_id) == SKIPPED

    def snapshot(self) -> Dict[str, AnswerValue]:
        return {qid: (list(v) if isinstance(v, list) else v) for qid, v in self._answers.items()}

    def ordered(self, questions: Iterable[QuestionUnion]) -> List[Optional[AnswerValue]]:
        """Answers aligned with the resolved question list; None where unanswered"""
        return [self.get(q.id) for q in questions]
