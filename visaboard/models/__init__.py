# visaboard/models/__init__.py
from visaboard.database import Base
from .user import User
from .membership import Membership, UserMembership, Payment
from .question import Question, Comment
from .content import Blog, Video, File, VisaInfo, FVisaQuestion, BVisaQuestion, PersonalQuestion, BVisaPersonalQuestion

__all__ = [
    'Base', 'User', 'Membership', 'UserMembership', 'Payment', 'Question', 'Comment',
    'Blog', 'Video', 'File', 'VisaInfo', 'FVisaQuestion', 'BVisaQuestion',
    'PersonalQuestion', 'BVisaPersonalQuestion',
]
