"""Moderation of user-submitted questions.

PENDING is the only state a question can leave: ``approve`` moves it to
APPROVED and ``reject`` to REJECTED, optionally storing the reason as an
admin note. Both terminal states are final.
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session
from visaboard.errors import NotFound, InvalidState
from visaboard.models.question import Question, QUESTION_PENDING, QUESTION_APPROVED, QUESTION_REJECTED

logger = logging.getLogger("visaboard.moderation")


def create_question(db: Session, user_id: int, title: str, content: str) -> Question:
    question = Question(title=title, content=content, user_id=user_id, status=QUESTION_PENDING)
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


def _get_pending(db: Session, question_id: int) -> Question:
    question = db.query(Question).filter(Question.id == question_id).first()
    if not question:
        raise NotFound("Question not found")
    if question.status != QUESTION_PENDING:
        raise InvalidState(f"Question is already {question.status.lower()}")
    return question


def approve_question(db: Session, question_id: int) -> Question:
    question = _get_pending(db, question_id)
    question.status = QUESTION_APPROVED
    db.commit()
    db.refresh(question)
    logger.info(f"Question {question.id} approved")
    return question


def reject_question(db: Session, question_id: int, reason: Optional[str] = None) -> Question:
    question = _get_pending(db, question_id)
    question.status = QUESTION_REJECTED
    if reason:
        question.admin_note = reason
    db.commit()
    db.refresh(question)
    logger.info(f"Question {question.id} rejected")
    return question
