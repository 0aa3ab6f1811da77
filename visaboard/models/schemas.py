from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional, List, Dict, Any

# ---------------------------------------------------------------------------
# Users & auth
# ---------------------------------------------------------------------------

class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "email": "name@mail.com",
                "password": "MySecret123!",
                "name": "Li Wei",
            }
        }

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class UserOut(BaseModel):
    id: int
    email: str
    name: Optional[str]
    role: str
    ai_suggestions_used: int
    ai_suggestions_reset_date: Optional[datetime]
    is_active: bool
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

class UserBrief(BaseModel):
    id: int
    name: Optional[str]
    email: str

    class Config:
        from_attributes = True

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut

class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    current_password: Optional[str] = Field(None, alias="currentPassword")
    new_password: Optional[str] = Field(None, alias="newPassword", min_length=6)

    class Config:
        populate_by_name = True

class RoleUpdate(BaseModel):
    role: str

# ---------------------------------------------------------------------------
# Memberships & payments
# ---------------------------------------------------------------------------

class MembershipIn(BaseModel):
    name: str
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    duration: int = Field(..., ge=1)
    features: List[str] = []
    active: bool = True
    order: int = 0

class MembershipUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    duration: Optional[int] = Field(None, ge=1)
    features: Optional[List[str]] = None
    active: Optional[bool] = None
    order: Optional[int] = None

class MembershipOut(BaseModel):
    id: int
    name: str
    description: Optional[str]
    price: float
    duration: int
    features: List[str]
    active: bool
    order: int

    class Config:
        from_attributes = True

class AdminMembershipOut(MembershipOut):
    user_membership_count: int = 0
    payment_count: int = 0

class UserMembershipOut(BaseModel):
    id: int
    user_id: int
    membership_id: int
    start_date: datetime
    end_date: datetime
    status: str
    is_expired: bool = False
    membership: Optional[MembershipOut] = None

    class Config:
        from_attributes = True

class PaymentOut(BaseModel):
    id: int
    user_id: int
    membership_id: Optional[int]
    amount: float
    currency: str
    method: str
    status: str
    transaction_id: str
    payment_data: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

class GrantRequest(BaseModel):
    user_id: int = Field(..., alias="userId")
    membership_id: int = Field(..., alias="membershipId")

    class Config:
        populate_by_name = True

class ExtendRequest(BaseModel):
    user_membership_id: int = Field(..., alias="userMembershipId")
    days: int

    class Config:
        populate_by_name = True

class CancelRequest(BaseModel):
    user_membership_id: int = Field(..., alias="userMembershipId")

    class Config:
        populate_by_name = True

class UsageAdjustRequest(BaseModel):
    user_id: int = Field(..., alias="userId")
    action: str
    value: Optional[int] = None

    class Config:
        populate_by_name = True

class PaymentCreate(BaseModel):
    membership_id: int = Field(..., alias="membershipId")
    payment_method: str = Field(..., alias="paymentMethod")

    class Config:
        populate_by_name = True

class PaymentCallback(BaseModel):
    transaction_id: str = Field(..., alias="transactionId")
    status: str
    payment_data: Optional[Dict[str, Any]] = Field(None, alias="paymentData")

    class Config:
        populate_by_name = True

# ---------------------------------------------------------------------------
# Questions & comments
# ---------------------------------------------------------------------------

class QuestionCreate(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)

class QuestionUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None

class QuestionOut(BaseModel):
    id: int
    title: str
    content: str
    status: str
    admin_note: Optional[str]
    user_id: int
    user: Optional[UserBrief] = None
    comment_count: int = 0
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True

class RejectRequest(BaseModel):
    reason: Optional[str] = None

class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1)
    question_id: Optional[int] = Field(None, alias="questionId")
    video_id: Optional[int] = Field(None, alias="videoId")

    class Config:
        populate_by_name = True

class CommentOut(BaseModel):
    id: int
    content: str
    user_id: int
    question_id: Optional[int]
    video_id: Optional[int]
    user: Optional[UserBrief] = None
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

class QuestionDetail(QuestionOut):
    comments: List[CommentOut] = []

# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------

class BlogIn(BaseModel):
    title: str
    slug: str
    content: str
    summary: Optional[str] = None
    published: bool = False

class BlogUpdate(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    content: Optional[str] = None
    summary: Optional[str] = None
    published: Optional[bool] = None

class BlogOut(BaseModel):
    id: int
    title: str
    slug: str
    content: str
    summary: Optional[str]
    published: bool
    author_id: int
    author: Optional[UserBrief] = None
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

class VideoIn(BaseModel):
    title: str
    url: str
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    published: bool = True
    order: int = 0

class VideoUpdate(BaseModel):
    title: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    published: Optional[bool] = None
    order: Optional[int] = None

class VideoOut(BaseModel):
    id: int
    title: str
    url: str
    description: Optional[str]
    thumbnail: Optional[str]
    published: bool
    order: int
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

class FileIn(BaseModel):
    name: str
    original_name: str = Field(..., alias="originalName")
    url: str
    description: Optional[str] = None
    file_size: int = Field(0, alias="fileSize", ge=0)
    mime_type: Optional[str] = Field(None, alias="mimeType")
    category: Optional[str] = None
    published: bool = True
    order: int = 0

    class Config:
        populate_by_name = True

class FileUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    published: Optional[bool] = None
    order: Optional[int] = None

class FileOut(BaseModel):
    id: int
    name: str
    original_name: str
    description: Optional[str]
    file_size: int
    mime_type: Optional[str]
    category: Optional[str]
    download_count: int
    published: bool
    order: int
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

class VisaInfoIn(BaseModel):
    title: str
    content: str
    published: bool = True
    order: int = 0

class VisaInfoOut(BaseModel):
    id: int
    visa_type: str
    title: str
    content: str
    published: bool
    order: int
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True

class VisaQuestionIn(BaseModel):
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    published: bool = True

class VisaQuestionUpdate(BaseModel):
    question: Optional[str] = None
    answer: Optional[str] = None
    published: Optional[bool] = None
    order: Optional[int] = None

class VisaQuestionOut(BaseModel):
    id: int
    question: str
    answer: str
    published: bool
    order: int

    class Config:
        from_attributes = True

class PersonalQuestionIn(BaseModel):
    question: str = Field(..., min_length=1)
    answer: Optional[str] = None

class PersonalQuestionUpdate(BaseModel):
    question: Optional[str] = Field(None, min_length=1)
    answer: Optional[str] = None

class PersonalQuestionOut(BaseModel):
    id: int
    question: str
    answer: str
    user_id: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True
