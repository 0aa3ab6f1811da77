from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from visaboard.database import Base

QUESTION_PENDING = "PENDING"
QUESTION_APPROVED = "APPROVED"
QUESTION_REJECTED = "REJECTED"
QUESTION_STATUSES = (QUESTION_PENDING, QUESTION_APPROVED, QUESTION_REJECTED)


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default=QUESTION_PENDING, index=True)
    admin_note = Column(Text, nullable=True)  # rejection reason
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="questions")
    comments = relationship("Comment", back_populates="question", cascade="all, delete-orphan")

    @property
    def comment_count(self) -> int:
        return len(self.comments)


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    content = Column(Text, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    # exactly one of question_id / video_id is set
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=True)
    video_id = Column(Integer, ForeignKey("videos.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="comments")
    question = relationship("Question", back_populates="comments")
    video = relationship("Video", back_populates="comments")
