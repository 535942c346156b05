import pytest

from live_quiz.core.errors import AnswerRejected, NotFound, QuizValidationError
from live_quiz.core.models import Transition
from live_quiz.core.services.scoring import ScoringEngine
from live_quiz.core.store import participant_path


@pytest.fixture
def started(machine, registry, pin):
    registry.join(pin, "p1", "Ann")
    machine.apply_transition(pin, Transition.START)
    return pin


def _reason(excinfo) -> str:
    return excinfo.value.reason


def test_correct_answer_scores_ten(scoring, registry, started, clock):
    delta = scoring.submit_answer(started, "p1", 0, 1)

    assert delta.correct and delta.points == 10 and delta.score == 10
    participant = registry.get(started, "p1")
    assert participant.score == 10
    assert participant.current_answer_index == 1
    assert participant.answer_question_index == 0
    assert participant.last_answer_time == clock.now


def test_wrong_answer_records_but_scores_nothing(scoring, registry, started):
    delta = scoring.submit_answer(started, "p1", 0, 3)

    assert not delta.correct and delta.points == 0
    participant = registry.get(started, "p1")
    assert participant.score == 0
    assert participant.answer_question_index == 0


def test_duplicate_submission_scores_once(scoring, registry, started):
    scoring.submit_answer(started, "p1", 0, 1)
    with pytest.raises(AnswerRejected) as excinfo:
        scoring.submit_answer(started, "p1", 0, 1)

    assert _reason(excinfo) == AnswerRejected.ALREADY_ANSWERED
    assert registry.get(started, "p1").score == 10


def test_answer_for_previous_question_does_not_block_current(scoring, machine, registry, started):
    scoring.submit_answer(started, "p1", 0, 1)
    machine.apply_transition(started, Transition.ADVANCE)

    delta = scoring.submit_answer(started, "p1", 1, 0)

    assert delta.score == 20
    assert registry.get(started, "p1").answer_question_index == 1


def test_rejected_while_results_are_shown(scoring, machine, registry, started):
    machine.apply_transition(started, Transition.REVEAL)
    with pytest.raises(AnswerRejected) as excinfo:
        scoring.submit_answer(started, "p1", 0, 1)

    assert _reason(excinfo) == AnswerRejected.ANSWERS_CLOSED
    assert registry.get(started, "p1").answer_question_index is None


def test_rejected_when_not_active(scoring, registry, pin):
    registry.join(pin, "p1", "Ann")
    with pytest.raises(AnswerRejected) as excinfo:
        scoring.submit_answer(pin, "p1", 0, 1)
    assert _reason(excinfo) == AnswerRejected.NOT_ACTIVE


@pytest.mark.parametrize("option", [-1, 4, 10])
def test_rejected_out_of_range_option(scoring, started, option):
    with pytest.raises(AnswerRejected) as excinfo:
        scoring.submit_answer(started, "p1", 0, option)
    assert _reason(excinfo) == AnswerRejected.INVALID_OPTION


def test_rejected_for_stale_question_index(scoring, started):
    with pytest.raises(AnswerRejected) as excinfo:
        scoring.submit_answer(started, "p1", 1, 0)
    assert _reason(excinfo) == AnswerRejected.WRONG_QUESTION


def test_unknown_participant_or_session(scoring, started):
    with pytest.raises(NotFound):
        scoring.submit_answer(started, "ghost", 0, 1)
    with pytest.raises(NotFound):
        scoring.submit_answer("000000", "p1", 0, 1)


def test_concurrent_duplicate_is_caught_by_compare_and_set(scoring, store, registry, started):
    original = store.compare_and_set
    path = participant_path(started, "p1")

    def racing_compare_and_set(target, expected, value):
        if target == path and expected.get("answerQuestionIndex") is None:
            # The same participant's other tab lands first.
            original(target, expected, value)
            return False
        return original(target, expected, value)

    store.compare_and_set = racing_compare_and_set
    with pytest.raises(AnswerRejected) as excinfo:
        scoring.submit_answer(started, "p1", 0, 1)

    assert _reason(excinfo) == AnswerRejected.ALREADY_ANSWERED
    assert registry.get(started, "p1").score == 10


def test_configurable_points(store, repository, registry, machine, pin, clock):
    engine = ScoringEngine(store, repository, clock, correct_points=25)
    registry.join(pin, "p1", "Ann")
    machine.apply_transition(pin, Transition.START)

    assert engine.submit_answer(pin, "p1", 0, 1).score == 25


@pytest.mark.parametrize("participant_id", ["", "   ", "p1/score", "p1/"])
def test_malformed_participant_id_is_a_validation_error(scoring, registry, started, participant_id):
    with pytest.raises(QuizValidationError):
        scoring.submit_answer(started, participant_id, 0, 1)
    with pytest.raises(QuizValidationError):
        registry.get(started, participant_id)
    assert registry.get(started, "p1").score == 0
