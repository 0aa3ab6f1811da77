import pytest

from visaboard.errors import NotFound, InvalidState
from visaboard.moderation import create_question, approve_question, reject_question
from visaboard.models.question import QUESTION_PENDING, QUESTION_APPROVED, QUESTION_REJECTED


def test_created_questions_start_pending(db_session, create_user):
    question = create_question(db_session, create_user().id, "Title", "Body")
    assert question.status == QUESTION_PENDING


def test_approve_pending_question(db_session, create_user, create_question):
    question = create_question(create_user())
    assert approve_question(db_session, question.id).status == QUESTION_APPROVED


def test_approving_twice_names_current_status(db_session, create_user, create_question):
    question = create_question(create_user())
    approve_question(db_session, question.id)

    with pytest.raises(InvalidState, match="Question is already approved"):
        approve_question(db_session, question.id)

    db_session.refresh(question)
    assert question.status == QUESTION_APPROVED


def test_reject_stores_reason(db_session, create_user, create_question):
    question = create_question(create_user())
    rejected = reject_question(db_session, question.id, "Duplicate of #3")
    assert rejected.status == QUESTION_REJECTED
    assert rejected.admin_note == "Duplicate of #3"


def test_reject_without_reason(db_session, create_user, create_question):
    question = create_question(create_user())
    rejected = reject_question(db_session, question.id)
    assert rejected.status == QUESTION_REJECTED
    assert rejected.admin_note is None


@pytest.mark.parametrize("start", [QUESTION_APPROVED, QUESTION_REJECTED])
def test_terminal_states_cannot_transition(db_session, create_user, create_question, start):
    question = create_question(create_user(), status=start)
    with pytest.raises(InvalidState):
        approve_question(db_session, question.id)
    with pytest.raises(InvalidState):
        reject_question(db_session, question.id, "nope")


def test_unknown_question(db_session):
    with pytest.raises(NotFound):
        approve_question(db_session, 42)
