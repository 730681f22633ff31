from enum import Enum
from typing import List, Optional, Any, Dict, Union, Annotated, Literal
from pydantic import BaseModel, Field, ConfigDict, Discriminator, Tag, field_validator, model_validator
import uuid


# ===========================
# ENUMS AND BASE TYPES
# ===========================

class SurveyType(str, Enum):
    SURVEY = "survey"
    ASSESSMENT = "assessment"
    QUIZ = "quiz"
    IQ = "iq"
    ONBOARDING = "onboarding"
    LIVE_QUIZ = "live_quiz"


class SurveyStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"


class SourceType(str, Enum):
    MANUAL = "manual"
    QUESTION_BANK = "question_bank"
    MULTI_QUESTION_BANK = "multi_question_bank"
    MANUAL_SELECTION = "manual_selection"


BANK_SOURCE_TYPES = frozenset({
    SourceType.QUESTION_BANK,
    SourceType.MULTI_QUESTION_BANK,
    SourceType.MANUAL_SELECTION,
})


class ScoringMode(str, Enum):
    PERCENTAGE = "percentage"
    ACCUMULATED = "accumulated"


class QuestionType(str, Enum):
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    SHORT_TEXT = "short_text"


class SessionPhase(str, Enum):
    INSTRUCTIONS = "instructions"
    QUESTIONS = "questions"
    RESULTS = "results"


class SubmitTrigger(str, Enum):
    MANUAL = "manual"
    TIMER = "timer"


# An answer is a label (single choice / short text) or an ordered list of labels
AnswerValue = Union[str, List[str]]


class ApiModel(BaseModel):
    """Base for wire models: camelCase aliases, snake_case attributes"""
    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore"
    )


# ===========================
# QUESTION MODELS
# ===========================

class OptionItem(ApiModel):
    """Option carrying an image next to (or instead of) its label"""
    text: str = Field(default="", description="Option label")
    image_url: Optional[str] = Field(None, alias="imageUrl", description="Option image")

    @field_validator("text", mode="before")
    @classmethod
    def _text_as_label(cls, value: Any) -> str:
        return "" if value is None else str(value)


Option = Union[str, OptionItem]


def option_label(option: Option) -> str:
    """Label used to match a stored answer against an option"""
    if isinstance(option, str):
        return option
    return option.text or ""


class Question(ApiModel):
    """Base question model with common fields"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="_id", description="Question ID")
    type: str = Field(..., description="Type of question")
    text: str = Field(..., description="Question text")
    description: Optional[str] = Field(None, description="Markdown description")
    description_image: Optional[str] = Field(None, alias="descriptionImage", description="Image shown with the question")
    options: List[Option] = Field(default_factory=list, description="Ordered answer options")
    points: Optional[float] = Field(None, description="Points for this question")
    explanation: Optional[str] = Field(None, description="Explanation revealed after grading")
    tags: List[str] = Field(default_factory=list)
    difficulty: Optional[str] = Field(None)

    @field_validator("options", mode="before")
    @classmethod
    def _coerce_options(cls, value: Any) -> Any:
        # Stored options are labels or {text, imageUrl}; bare scalars become labels
        if value is None:
            return []
        if not isinstance(value, list):
            return value
        return [
            option if isinstance(option, (str, dict, OptionItem)) else ("" if option is None else str(option))
            for option in value
        ]

    def option_index(self, label: str) -> int:
        """Index of the option whose label equals ``label``, -1 when absent"""
        for index, option in enumerate(self.options):
            if option_label(option) == label:
                return index
        return -1

    def option_text(self, index: int) -> str:
        if 0 <= index < len(self.options):
            return option_label(self.options[index])
        return ""

    def masked(self) -> Dict[str, Any]:
        """Candidate-safe representation, without the answer key"""
        return self.model_dump(by_alias=True, exclude={"correct_answer", "explanation"}, exclude_none=True)


class SingleChoiceQuestion(Question):
    """correctAnswer is an option index; legacy data may store the label instead"""
    type: Literal["single_choice"] = Field(default="single_choice")
    correct_answer: Optional[Any] = Field(None, alias="correctAnswer")


class MultipleChoiceQuestion(Question):
    """correctAnswer is the set of option indices that must all be selected"""
    type: Literal["multiple_choice"] = Field(default="multiple_choice")
    correct_answer: Optional[Any] = Field(None, alias="correctAnswer")


class ShortTextQuestion(Question):
    """correctAnswer is compared with the answer as a string"""
    type: Literal["short_text"] = Field(default="short_text")
    correct_answer: Optional[Any] = Field(None, alias="correctAnswer")


class OtherQuestion(Question):
    """Any question type the scoring engine has no dedicated matcher for"""
    correct_answer: Optional[Any] = Field(None, alias="correctAnswer")


_KNOWN_TYPES = {t.value for t in QuestionType}


def _question_tag(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return kind if kind in _KNOWN_TYPES else "other"


# Tagged union keyed by question type; unknown types land on OtherQuestion
QuestionUnion = Annotated[
    Union[
        Annotated[SingleChoiceQuestion, Tag("single_choice")],
        Annotated[MultipleChoiceQuestion, Tag("multiple_choice")],
        Annotated[ShortTextQuestion, Tag("short_text")],
        Annotated[OtherQuestion, Tag("other")],
    ],
    Discriminator(_question_tag),
]


# ===========================
# SURVEY MODELS
# ===========================

class ScoringSettings(ApiModel):
    """How a survey is graded and what the candidate gets to see"""
    scoring_mode: ScoringMode = Field(default=ScoringMode.PERCENTAGE, alias="scoringMode")
    passing_threshold: Optional[float] = Field(None, alias="passingThreshold")
    default_question_points: Optional[float] = Field(None, alias="defaultQuestionPoints")
    show_score: bool = Field(default=True, alias="showScore")
    show_score_breakdown: bool = Field(default=True, alias="showScoreBreakdown")
    show_correct_answers: bool = Field(default=False, alias="showCorrectAnswers")

    @model_validator(mode="before")
    @classmethod
    def _lift_custom_rules(cls, data: Any) -> Any:
        # Stored surveys keep defaultQuestionPoints under customScoringRules
        if isinstance(data, dict) and data.get("defaultQuestionPoints") is None:
            rules = data.get("customScoringRules") or {}
            if isinstance(rules, dict) and rules.get("defaultQuestionPoints") is not None:
                data = {**data, "defaultQuestionPoints": rules["defaultQuestionPoints"]}
        return data


class Survey(ApiModel):
    """Survey definition as served by GET /survey/{slug}"""
    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "_id": "665f1c2e9b1e8a0012345678",
                "slug": "backend-screening",
                "title": "Backend Screening",
                "type": "assessment",
                "status": "active",
                "sourceType": "question_bank",
                "timeLimit": 30,
                "scoringSettings": {"scoringMode": "percentage", "passingThreshold": 70}
            }
        }
    )

    id: str = Field(..., alias="_id", description="Survey ID")
    slug: str = Field(..., description="Public slug used in survey URLs")
    title: str = Field(default="")
    description: Optional[str] = Field(None)
    instructions: Optional[str] = Field(None)
    type: str = Field(default=SurveyType.ASSESSMENT.value, description="Survey type")
    status: Optional[str] = Field(None, description="Lifecycle status")
    source_type: SourceType = Field(default=SourceType.MANUAL, alias="sourceType")
    time_limit_minutes: Optional[float] = Field(None, alias="timeLimit", description="Time limit in minutes")
    questions: List[QuestionUnion] = Field(default_factory=list, description="Embedded questions (manual surveys only)")
    scoring_settings: ScoringSettings = Field(default_factory=ScoringSettings, alias="scoringSettings")

    @property
    def is_bank_based(self) -> bool:
        return self.source_type in BANK_SOURCE_TYPES

    @property
    def time_limit_seconds(self) -> int:
        if not self.time_limit_minutes or self.time_limit_minutes <= 0:
            return 0
        return int(round(self.time_limit_minutes * 60))


class QuestionsEnvelope(ApiModel):
    """Body of GET /survey/{slug}/questions"""
    questions: List[QuestionUnion] = Field(default_factory=list)


# ===========================
# SESSION STATE MODELS
# ===========================

class QuestionTiming(ApiModel):
    """Dwell time on one question, accumulated across visits"""
    start_time: float = Field(..., alias="startTime", description="Clock reading of the latest visit")
    end_time: Optional[float] = Field(None, alias="endTime")
    duration_seconds: float = Field(default=0.0, alias="durationSeconds")
    visits: int = Field(default=0)


# ===========================
# SCORING MODELS
# ===========================

class AssessmentResult(ApiModel):
    """Grading outcome of a single question"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    question_id: str = Field(..., alias="questionId")
    question_text: str = Field(..., alias="questionText")
    question_description: Optional[str] = Field(None, alias="questionDescription")
    description_image: Optional[str] = Field(None, alias="descriptionImage")
    user_answer: str = Field(..., alias="userAnswer", description="Candidate answer normalized for display")
    correct_answer_text: str = Field(..., alias="correctAnswer")
    is_correct: bool = Field(..., alias="isCorrect")
    points_awarded: float = Field(..., alias="pointsAwarded")
    max_points: float = Field(..., alias="maxPoints")


class ScoringResult(ApiModel):
    """Aggregate grade of a submission"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    total_points: float = Field(..., alias="totalPoints")
    max_possible_points: float = Field(..., alias="maxPossiblePoints")
    correct_count: int = Field(..., alias="correctAnswers")
    wrong_count: int = Field(..., alias="wrongAnswers")
    display_score: float = Field(..., alias="displayScore")
    passed: bool = Field(...)
    scoring_mode: ScoringMode = Field(..., alias="scoringMode")
    scoring_description: str = Field(..., alias="scoringDescription")


class ScoringOutcome(ApiModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    score: ScoringResult
    results: List[AssessmentResult] = Field(default_factory=list)


# ===========================
# API REQUEST/RESPONSE MODELS
# ===========================

class ResponsePayload(ApiModel):
    """Body of POST /surveys/{surveyId}/responses"""
    name: str
    email: str
    survey_id: str = Field(..., alias="surveyId")
    answers: List[Optional[AnswerValue]] = Field(default_factory=list, description="Answers in question order")
    time_spent: int = Field(default=0, alias="timeSpent", description="Seconds between start and submit")
    is_auto_submit: bool = Field(default=False, alias="isAutoSubmit")
    answer_durations: Dict[str, int] = Field(default_factory=dict, alias="answerDurations", description="Question index to seconds spent")


class CreateSessionRequest(ApiModel):
    slug: str


class ResolveQuestionsRequest(ApiModel):
    email: str


class StartSessionRequest(ApiModel):
    name: str
    email: str


class SetAnswerRequest(ApiModel):
    value: AnswerValue


class TimerView(ApiModel):
    remaining_seconds: int = Field(..., alias="remainingSeconds")
    display: str
    is_active: bool = Field(..., alias="isActive")
    is_expired: bool = Field(..., alias="isExpired")


class SessionView(ApiModel):
    """Candidate-facing snapshot of a hosted session"""
    session_id: str = Field(..., alias="sessionId")
    survey_id: str = Field(..., alias="surveyId")
    title: str
    phase: SessionPhase
    current_index: int = Field(..., alias="currentIndex")
    total_questions: int = Field(..., alias="totalQuestions")
    progress: float
    current_question: Optional[Dict[str, Any]] = Field(None, alias="currentQuestion")
    answers: Dict[str, Optional[AnswerValue]] = Field(default_factory=dict)
    timer: Optional[TimerView] = None
    score: Optional[ScoringResult] = None
    question_results: List[AssessmentResult] = Field(default_factory=list, alias="questionResults")
    error: Optional[str] = None
