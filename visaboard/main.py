from fastapi import FastAPI, Depends, HTTPException, status, Request, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse, JSONResponse
from fastapi.routing import APIRouter
from contextlib import asynccontextmanager
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from datetime import datetime, timezone
import logging
from typing import Optional, List

# Database imports
from visaboard.database import get_db, engine
from visaboard import models

# Authentication and security imports
from visaboard.auth.security import (
    get_current_user, get_optional_user, require_admin, oauth2_scheme,
    hash_password, verify_password, token_for_user,
)

# Models
from visaboard.models.user import User, ROLES
from visaboard.models.membership import (
    Membership, UserMembership, Payment, PAYMENT_COMPLETED, STATUS_CANCELLED, STATUS_EXPIRED,
)
from visaboard.models.question import Question, Comment, QUESTION_APPROVED, QUESTION_PENDING, QUESTION_STATUSES
from visaboard.models.content import (
    Blog, Video, File, VisaInfo, FVisaQuestion, BVisaQuestion,
    PersonalQuestion, BVisaPersonalQuestion, NO_ANSWER_YET,
)

# Services
from visaboard.services.redis_service import redis_service
from visaboard.services.suggestion_service import SuggestionService, get_suggestion_service
from visaboard.services.payment_service import result_url

# Billing system
from visaboard.billing.active import ActiveMembershipQuery
from visaboard.billing.enforce import ensure_suggestion_quota
from visaboard.billing.usage import check_usage_limit, increment_usage, adjust_usage
from visaboard.billing.assigns import grant_membership, extend_membership, cancel_membership
from visaboard.billing.payments import create_payment, process_payment_callback
from visaboard.billing.seed import seed_membership_plans, reset_membership_plans, delete_membership_plan
from visaboard.billing.timeutils import now_utc

# Moderation
from visaboard.moderation import create_question, approve_question, reject_question

# Errors
from visaboard.errors import VisaboardError, NotFound, InvalidArgument, Conflict

# Pydantic schemas
from visaboard.models.schemas import (
    UserCreate, UserLogin, UserOut, Token, ProfileUpdate, RoleUpdate,
    MembershipIn, MembershipUpdate, MembershipOut, AdminMembershipOut, UserMembershipOut, PaymentOut,
    GrantRequest, ExtendRequest, CancelRequest, UsageAdjustRequest, PaymentCreate, PaymentCallback,
    QuestionCreate, QuestionUpdate, QuestionOut, QuestionDetail, RejectRequest, CommentCreate, CommentOut,
    BlogIn, BlogUpdate, BlogOut, VideoIn, VideoUpdate, VideoOut, FileIn, FileUpdate, FileOut,
    VisaInfoIn, VisaInfoOut, VisaQuestionIn, VisaQuestionUpdate, VisaQuestionOut,
    PersonalQuestionIn, PersonalQuestionUpdate, PersonalQuestionOut,
)

# Config
from visaboard.config import settings

# Setup Logger
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("visaboard")

# Lifespan events to handle startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Visaboard starting up...")
    models.Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")

    if redis_service.ping():
        logger.info("Redis connected successfully")
    else:
        logger.warning("Redis unavailable. Token blacklisting will not work.")

    yield

    logger.info("Visaboard shutting down...")

app = FastAPI(
    title="Visaboard API",
    description="Visa information, Q&A board and membership service",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "PUT", "PATCH"],
    allow_headers=["Authorization", "Content-Type"],
)

# API Routers
auth_router = APIRouter(prefix="/auth", tags=["Authentication"])
user_router = APIRouter(prefix="/user", tags=["User"])
ai_router = APIRouter(tags=["AI"])
membership_router = APIRouter(prefix="/membership", tags=["Membership"])
payment_router = APIRouter(prefix="/payment", tags=["Payment"])
questions_router = APIRouter(prefix="/questions", tags=["Questions"])
comments_router = APIRouter(prefix="/comments", tags=["Comments"])
content_router = APIRouter(tags=["Content"])
admin_router = APIRouter(prefix="/admin", tags=["Admin"])
health_router = APIRouter(prefix="/health", tags=["Health"])

VISA_QUESTION_MODELS = {"f-visa": FVisaQuestion, "b-visa": BVisaQuestion}
PERSONAL_QUESTION_MODELS = {
    "personal-questions": PersonalQuestion,
    "b-visa-personal-questions": BVisaPersonalQuestion,
}


def _apply_updates(obj, update) -> None:
    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(obj, field, value)


def _next_order(db: Session, model) -> int:
    last = db.query(model).order_by(model.order.desc()).first()
    return last.order + 1 if last else 0


def _get_or_404(db: Session, model, object_id: int, label: str):
    obj = db.query(model).filter(model.id == object_id).first()
    if not obj:
        raise NotFound(f"{label} not found")
    return obj


def _visa_question_model(kind: str):
    model = VISA_QUESTION_MODELS.get(kind)
    if model is None:
        raise NotFound("Unknown visa type")
    return model

# =============================================================================
# AUTHENTICATION ROUTES
# =============================================================================

@auth_router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
def register(body: UserCreate, db: Session = Depends(get_db)):
    """Create a USER account and return a token for it"""
    if db.query(User).filter(User.email == body.email).first():
        raise Conflict("Email already registered")
    user = User(
        email=body.email,
        name=body.name,
        hashed_password=hash_password(body.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Registered user {user.id}")
    return {"access_token": token_for_user(user), "token_type": "bearer", "user": user}

@auth_router.post("/login", response_model=Token)
def login(body: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email).first()
    if not user or not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Incorrect email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User inactive")
    return {"access_token": token_for_user(user), "token_type": "bearer", "user": user}

@auth_router.post("/logout")
def logout(current_user: User = Depends(get_current_user), token: str = Depends(oauth2_scheme)):
    """Logout user and blacklist current token"""
    if not redis_service.blacklist_token(token, settings.access_token_expire_minutes):
        return {
            "ok": True,
            "message": "Logged out (client-side only)",
            "warning": "Server-side token invalidation unavailable",
        }
    return {"ok": True, "message": "Successfully logged out", "user_id": current_user.id}

@auth_router.get("/me", response_model=UserOut)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    return current_user

# =============================================================================
# USER ROUTES
# =============================================================================

@user_router.get("/profile", response_model=UserOut)
def get_profile(current_user: User = Depends(get_current_user)):
    return current_user

@user_router.put("/profile", response_model=UserOut)
def update_profile(body: ProfileUpdate, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if body.name is not None:
        current_user.name = body.name
    if body.new_password:
        if not body.current_password or not verify_password(body.current_password, current_user.hashed_password):
            raise InvalidArgument("Current password is incorrect")
        current_user.hashed_password = hash_password(body.new_password)
    db.commit()
    db.refresh(current_user)
    return current_user

@user_router.get("/membership")
def get_my_membership(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Active memberships plus the ten most recent payments"""
    memberships = ActiveMembershipQuery(user_id=current_user.id, as_of=now_utc()).all(db)
    payments = (
        db.query(Payment)
        .filter(Payment.user_id == current_user.id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .limit(10)
        .all()
    )
    return {
        "memberships": [UserMembershipOut.model_validate(m).model_dump() for m in memberships],
        "payments": [PaymentOut.model_validate(p).model_dump() for p in payments],
        "hasMembership": len(memberships) > 0,
    }

@user_router.get("/questions", response_model=List[QuestionOut])
def get_my_questions(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return (
        db.query(Question)
        .filter(Question.user_id == current_user.id)
        .order_by(Question.created_at.desc(), Question.id.desc())
        .all()
    )

@user_router.get("/comments", response_model=List[CommentOut])
def get_my_comments(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return (
        db.query(Comment)
        .filter(Comment.user_id == current_user.id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .all()
    )

def _personal_question_model(collection: str):
    model = PERSONAL_QUESTION_MODELS.get(collection)
    if model is None:
        raise NotFound("Not found")
    return model

def _get_own_personal_question(db: Session, model, item_id: int, user_id: int):
    item = db.query(model).filter(model.id == item_id, model.user_id == user_id).first()
    if not item:
        raise NotFound("Personal question not found")
    return item

@user_router.get("/{collection}", response_model=List[PersonalQuestionOut])
def list_personal_questions(collection: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    model = _personal_question_model(collection)
    return (
        db.query(model)
        .filter(model.user_id == current_user.id)
        .order_by(model.created_at.desc(), model.id.desc())
        .all()
    )

@user_router.post("/{collection}", response_model=PersonalQuestionOut, status_code=status.HTTP_201_CREATED)
def create_personal_question(
    collection: str,
    body: PersonalQuestionIn,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    model = _personal_question_model(collection)
    item = model(question=body.question, answer=body.answer or NO_ANSWER_YET, user_id=current_user.id)
    db.add(item)
    db.commit()
    db.refresh(item)
    return item

@user_router.patch("/{collection}/{item_id}", response_model=PersonalQuestionOut)
def update_personal_question(
    collection: str,
    item_id: int,
    body: PersonalQuestionUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    item = _get_own_personal_question(db, _personal_question_model(collection), item_id, current_user.id)
    if body.question is not None:
        item.question = body.question
    if "answer" in body.model_fields_set:
        item.answer = body.answer or NO_ANSWER_YET
    db.commit()
    db.refresh(item)
    return item

@user_router.delete("/{collection}/{item_id}")
def delete_personal_question(
    collection: str,
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    item = _get_own_personal_question(db, _personal_question_model(collection), item_id, current_user.id)
    db.delete(item)
    db.commit()
    return {"success": True}

# =============================================================================
# AI SUGGESTION ROUTES
# =============================================================================

@ai_router.get("/usage")
def get_usage(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Caller's AI-suggestion quota, applying a period reset if one is due"""
    return check_usage_limit(db, current_user.id).as_dict()

@ai_router.get("/suggestions")
def get_suggestions(
    topic: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: SuggestionService = Depends(get_suggestion_service),
):
    usage = ensure_suggestion_quota(current_user, db)
    if not topic:
        raise InvalidArgument("Topic parameter is required")

    suggestions = service.generate(topic)
    # Counted whether the provider answered or the fallback list was used
    increment_usage(db, current_user.id)

    return {
        "suggestions": suggestions,
        "usage": {
            "used": usage.used + 1,
            "limit": usage.limit,
            "remaining": usage.limit - usage.used - 1,
        },
    }

# =============================================================================
# MEMBERSHIP & PAYMENT ROUTES
# =============================================================================

@membership_router.get("", response_model=List[MembershipOut])
def list_active_plans(db: Session = Depends(get_db)):
    return (
        db.query(Membership)
        .filter(Membership.active.is_(True))
        .order_by(Membership.order.asc(), Membership.price.asc())
        .all()
    )

@payment_router.post("/create")
def create_payment_route(body: PaymentCreate, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    payment, payment_url = create_payment(db, current_user.id, body.membership_id, body.payment_method)
    return {
        "paymentId": payment.id,
        "paymentUrl": payment_url,
        "amount": payment.amount,
        "currency": payment.currency,
        "method": payment.method,
        "transactionId": payment.transaction_id,
    }

@payment_router.post("/callback")
def payment_callback(body: PaymentCallback, db: Session = Depends(get_db)):
    logger.info(f"Processing payment callback: {body.transaction_id} -> {body.status}")
    payment, already_processed = process_payment_callback(db, body.transaction_id, body.status, body.payment_data)
    response = {"success": True, "payment": PaymentOut.model_validate(payment).model_dump()}
    if already_processed:
        response["message"] = "Payment already processed"
    return response

@payment_router.get("/callback")
def payment_redirect(
    transaction_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    payment_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    """Redirect target for payment providers"""
    if not transaction_id or not status:
        return RedirectResponse(url=f"{settings.app_base_url}/membership?payment=error")
    try:
        process_payment_callback(
            db,
            transaction_id,
            status,
            {"paymentId": payment_id, "redirectSource": "GET", "timestamp": now_utc().isoformat()},
        )
    except VisaboardError as e:
        logger.error(f"Payment redirect error: {e.message}")
        return RedirectResponse(url=f"{settings.app_base_url}/membership?payment=error")
    return RedirectResponse(url=result_url(transaction_id, status, payment_id))

# =============================================================================
# QUESTION & COMMENT ROUTES
# =============================================================================

@questions_router.post("", response_model=QuestionOut, status_code=status.HTTP_201_CREATED)
def create_question_route(body: QuestionCreate, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return create_question(db, current_user.id, body.title, body.content)

@questions_router.get("", response_model=List[QuestionOut])
def list_questions(
    status_filter: str = Query(QUESTION_APPROVED, alias="status"),
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Approved questions for everyone; other statuses are admin-only"""
    status_filter = status_filter.upper()
    if status_filter not in QUESTION_STATUSES:
        raise InvalidArgument("Invalid status")
    if status_filter != QUESTION_APPROVED:
        if current_user is None:
            raise HTTPException(status_code=401, detail="Unauthorized")
        if not current_user.is_admin:
            raise HTTPException(status_code=403, detail="Admin access required")
    return (
        db.query(Question)
        .options(joinedload(Question.user))
        .filter(Question.status == status_filter)
        .order_by(Question.created_at.desc(), Question.id.desc())
        .all()
    )

@questions_router.get("/public", response_model=List[QuestionOut])
def list_public_questions(db: Session = Depends(get_db)):
    return (
        db.query(Question)
        .options(joinedload(Question.user))
        .filter(Question.status == QUESTION_APPROVED)
        .order_by(Question.created_at.desc(), Question.id.desc())
        .all()
    )

@questions_router.get("/{question_id}", response_model=QuestionDetail)
def get_public_question(question_id: int, db: Session = Depends(get_db)):
    question = (
        db.query(Question)
        .filter(Question.id == question_id, Question.status == QUESTION_APPROVED)
        .first()
    )
    if not question:
        raise NotFound("Question not found")
    return question

@comments_router.post("", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
def create_comment(body: CommentCreate, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if (body.question_id is None) == (body.video_id is None):
        raise InvalidArgument("Exactly one of questionId or videoId is required")
    if body.question_id is not None:
        question = db.query(Question).filter(Question.id == body.question_id, Question.status == QUESTION_APPROVED).first()
        if not question:
            raise NotFound("Question not found")
    else:
        video = db.query(Video).filter(Video.id == body.video_id, Video.published.is_(True)).first()
        if not video:
            raise NotFound("Video not found")

    comment = Comment(
        content=body.content,
        user_id=current_user.id,
        question_id=body.question_id,
        video_id=body.video_id,
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment

@comments_router.delete("/{comment_id}")
def delete_comment(comment_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    comment = _get_or_404(db, Comment, comment_id, "Comment")
    if comment.user_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=403, detail="You are not authorized to delete this comment")
    db.delete(comment)
    db.commit()
    return {"success": True}

# =============================================================================
# CONTENT ROUTES
# =============================================================================

@content_router.get("/blogs", response_model=List[BlogOut])
def list_blogs(current_user: Optional[User] = Depends(get_optional_user), db: Session = Depends(get_db)):
    query = db.query(Blog).options(joinedload(Blog.author))
    if current_user is None or not current_user.is_admin:
        query = query.filter(Blog.published.is_(True))
    return query.order_by(Blog.created_at.desc(), Blog.id.desc()).all()

@content_router.get("/blogs/{slug}", response_model=BlogOut)
def get_blog(slug: str, current_user: Optional[User] = Depends(get_optional_user), db: Session = Depends(get_db)):
    blog = db.query(Blog).filter(Blog.slug == slug).first()
    if not blog or (not blog.published and (current_user is None or not current_user.is_admin)):
        raise NotFound("Blog post not found")
    return blog

@content_router.get("/videos", response_model=List[VideoOut])
def list_videos(db: Session = Depends(get_db)):
    return (
        db.query(Video)
        .filter(Video.published.is_(True))
        .order_by(Video.order.asc(), Video.created_at.desc())
        .all()
    )

@content_router.get("/videos/{video_id}/comments", response_model=List[CommentOut])
def list_video_comments(video_id: int, db: Session = Depends(get_db)):
    video = db.query(Video).filter(Video.id == video_id, Video.published.is_(True)).first()
    if not video:
        raise NotFound("Video not found")
    return (
        db.query(Comment)
        .filter(Comment.video_id == video.id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .all()
    )

@content_router.get("/files", response_model=List[FileOut])
def list_files(category: Optional[str] = Query(None), db: Session = Depends(get_db)):
    query = db.query(File).filter(File.published.is_(True))
    if category:
        query = query.filter(File.category == category)
    return query.order_by(File.order.asc(), File.created_at.desc()).all()

@content_router.post("/files/{file_id}/download")
def download_file(file_id: int, db: Session = Depends(get_db)):
    """Count a download and hand back the storage URL"""
    updated = (
        db.query(File)
        .filter(File.id == file_id, File.published.is_(True))
        .update({File.download_count: File.download_count + 1}, synchronize_session=False)
    )
    if not updated:
        raise NotFound("File not found")
    db.commit()
    stored = db.query(File).filter(File.id == file_id).first()
    return {"url": stored.url, "downloadCount": stored.download_count}

@content_router.get("/visa/info/{visa_type}", response_model=VisaInfoOut)
def get_visa_info(visa_type: str, db: Session = Depends(get_db)):
    info = db.query(VisaInfo).filter(VisaInfo.visa_type == visa_type, VisaInfo.published.is_(True)).first()
    if not info:
        raise NotFound("Visa information not found")
    return info

@content_router.get("/visa/{kind}/questions", response_model=List[VisaQuestionOut])
def list_visa_questions(kind: str, db: Session = Depends(get_db)):
    model = _visa_question_model(kind)
    return db.query(model).filter(model.published.is_(True)).order_by(model.order.asc()).all()

# =====================================================================
# ADMIN ROUTES
# =====================================================================

@admin_router.get("/users", response_model=List[UserOut])
def get_all_users(admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    return db.query(User).order_by(User.id.asc()).all()

@admin_router.patch("/users/{user_id}/role", response_model=UserOut)
def update_user_role(user_id: int, body: RoleUpdate, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    if user_id == admin_user.id:
        raise HTTPException(status_code=403, detail="You cannot change your own role")
    if body.role not in ROLES:
        raise InvalidArgument("Invalid role value")
    user = _get_or_404(db, User, user_id, "User")
    user.role = body.role
    db.commit()
    db.refresh(user)
    return user

@admin_router.post("/ai-usage")
def manage_ai_usage(body: UsageAdjustRequest, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    user = adjust_usage(db, body.user_id, body.action, body.value)
    return {
        "success": True,
        "user": UserOut.model_validate(user).model_dump(),
        "message": f"AI usage {body.action} applied successfully",
    }

# --- membership plans ---

@admin_router.get("/membership/plans", response_model=List[AdminMembershipOut])
def list_all_plans(admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Every plan, with how many subscriptions and payments reference it"""
    subscription_counts = dict(
        db.query(UserMembership.membership_id, func.count(UserMembership.id))
        .group_by(UserMembership.membership_id)
        .all()
    )
    payment_counts = dict(
        db.query(Payment.membership_id, func.count(Payment.id))
        .group_by(Payment.membership_id)
        .all()
    )
    plans = db.query(Membership).order_by(Membership.order.asc(), Membership.price.asc()).all()
    return [
        AdminMembershipOut(
            **MembershipOut.model_validate(plan).model_dump(),
            user_membership_count=subscription_counts.get(plan.id, 0),
            payment_count=payment_counts.get(plan.id, 0),
        )
        for plan in plans
    ]

@admin_router.post("/membership/plans", response_model=MembershipOut, status_code=status.HTTP_201_CREATED)
def create_plan(body: MembershipIn, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    plan = Membership(**body.model_dump())
    db.add(plan)
    db.commit()
    db.refresh(plan)
    return plan

@admin_router.put("/membership/plans/{plan_id}", response_model=MembershipOut)
def update_plan(plan_id: int, body: MembershipUpdate, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    plan = _get_or_404(db, Membership, plan_id, "Membership")
    _apply_updates(plan, body)
    db.commit()
    db.refresh(plan)
    return plan

@admin_router.delete("/membership/plans/{plan_id}")
def delete_plan(plan_id: int, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    delete_membership_plan(db, plan_id)
    return {"success": True}

@admin_router.post("/membership/seed", response_model=List[MembershipOut])
def seed_plans(admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    return seed_membership_plans(db)

@admin_router.post("/membership/reset-plans", response_model=List[MembershipOut])
def reset_plans(admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    return reset_membership_plans(db)

# --- subscriptions ---

@admin_router.post("/membership/grant", status_code=status.HTTP_201_CREATED)
def grant_membership_route(body: GrantRequest, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    user_membership = grant_membership(db, body.user_id, body.membership_id)
    return {
        "success": True,
        "message": f"Successfully granted {user_membership.membership.name} to {user_membership.user.email}",
        "userMembership": UserMembershipOut.model_validate(user_membership).model_dump(),
    }

@admin_router.post("/membership/extend")
def extend_membership_route(body: ExtendRequest, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    user_membership = extend_membership(db, body.user_membership_id, body.days)
    return {
        "success": True,
        "message": (
            f"Successfully extended {user_membership.membership.name} for {user_membership.user.email} "
            f"by {body.days} days. New expiry: {user_membership.end_date.date().isoformat()}"
        ),
        "userMembership": UserMembershipOut.model_validate(user_membership).model_dump(),
    }

@admin_router.post("/membership/cancel")
def cancel_membership_route(body: CancelRequest, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    user_membership = cancel_membership(db, body.user_membership_id)
    return {
        "success": True,
        "message": f"Successfully cancelled {user_membership.membership.name} for {user_membership.user.email}",
        "userMembership": UserMembershipOut.model_validate(user_membership).model_dump(),
    }

@admin_router.get("/user-memberships", response_model=List[UserMembershipOut])
def list_user_memberships(
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: Optional[int] = Query(None, alias="userId"),
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(UserMembership).options(joinedload(UserMembership.membership))
    if status_filter and status_filter.upper() == STATUS_EXPIRED:
        # EXPIRED is never stored; it means a lapsed period that was not cancelled
        query = query.filter(UserMembership.status != STATUS_CANCELLED, UserMembership.end_date <= now_utc())
    elif status_filter:
        query = query.filter(UserMembership.status == status_filter.upper())
    if user_id is not None:
        query = query.filter(UserMembership.user_id == user_id)
    return query.order_by(UserMembership.created_at.desc(), UserMembership.id.desc()).all()

@admin_router.get("/payments")
def list_payments(
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: Optional[int] = Query(None, alias="userId"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Payment history with a total for pagination and completed-revenue stats"""
    query = db.query(Payment)
    if user_id is not None:
        query = query.filter(Payment.user_id == user_id)
    # revenue ignores the status filter, it always counts COMPLETED rows
    completed_count, total_revenue = (
        query.filter(Payment.status == PAYMENT_COMPLETED)
        .with_entities(func.count(Payment.id), func.sum(Payment.amount))
        .one()
    )
    if status_filter and status_filter.upper() != "ALL":
        query = query.filter(Payment.status == status_filter.upper())

    total = query.with_entities(func.count(Payment.id)).scalar()
    payments = (
        query.order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return {
        "payments": [PaymentOut.model_validate(p).model_dump() for p in payments],
        "pagination": {"total": total, "limit": limit, "offset": skip, "hasMore": skip + limit < total},
        "stats": {"totalRevenue": total_revenue or 0, "completedPayments": completed_count},
    }

# --- moderation ---

@admin_router.get("/questions/pending", response_model=List[QuestionOut])
def list_pending_questions(admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    return (
        db.query(Question)
        .options(joinedload(Question.user))
        .filter(Question.status == QUESTION_PENDING)
        .order_by(Question.created_at.desc(), Question.id.desc())
        .all()
    )

@admin_router.post("/questions/{question_id}/approve")
def approve_question_route(question_id: int, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    question = approve_question(db, question_id)
    return {"message": "Question approved successfully", "question": QuestionOut.model_validate(question).model_dump()}

@admin_router.post("/questions/{question_id}/reject")
def reject_question_route(
    question_id: int,
    body: Optional[RejectRequest] = None,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    question = reject_question(db, question_id, body.reason if body else None)
    return {"message": "Question rejected successfully", "question": QuestionOut.model_validate(question).model_dump()}

@admin_router.put("/questions/{question_id}", response_model=QuestionOut)
def update_question(question_id: int, body: QuestionUpdate, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    question = _get_or_404(db, Question, question_id, "Question")
    _apply_updates(question, body)
    db.commit()
    db.refresh(question)
    return question

@admin_router.delete("/questions/{question_id}")
def delete_question(question_id: int, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    question = _get_or_404(db, Question, question_id, "Question")
    db.delete(question)
    db.commit()
    return {"success": True}

@admin_router.get("/comments", response_model=List[CommentOut])
def list_all_comments(admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    return db.query(Comment).order_by(Comment.created_at.desc(), Comment.id.desc()).all()

# --- content ---

@admin_router.post("/blogs", response_model=BlogOut, status_code=status.HTTP_201_CREATED)
def create_blog(body: BlogIn, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    if db.query(Blog).filter(Blog.slug == body.slug).first():
        raise Conflict("Slug already exists")
    blog = Blog(**body.model_dump(), author_id=admin_user.id)
    db.add(blog)
    db.commit()
    db.refresh(blog)
    return blog

@admin_router.put("/blogs/{blog_id}", response_model=BlogOut)
def update_blog(blog_id: int, body: BlogUpdate, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    blog = _get_or_404(db, Blog, blog_id, "Blog post")
    if body.slug and body.slug != blog.slug and db.query(Blog).filter(Blog.slug == body.slug).first():
        raise Conflict("Slug already exists")
    _apply_updates(blog, body)
    db.commit()
    db.refresh(blog)
    return blog

@admin_router.delete("/blogs/{blog_id}")
def delete_blog(blog_id: int, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    blog = _get_or_404(db, Blog, blog_id, "Blog post")
    db.delete(blog)
    db.commit()
    return {"success": True}

@admin_router.post("/videos", response_model=VideoOut, status_code=status.HTTP_201_CREATED)
def create_video(body: VideoIn, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    video = Video(**body.model_dump())
    db.add(video)
    db.commit()
    db.refresh(video)
    return video

@admin_router.put("/videos/{video_id}", response_model=VideoOut)
def update_video(video_id: int, body: VideoUpdate, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    video = _get_or_404(db, Video, video_id, "Video")
    _apply_updates(video, body)
    db.commit()
    db.refresh(video)
    return video

@admin_router.delete("/videos/{video_id}")
def delete_video(video_id: int, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    video = _get_or_404(db, Video, video_id, "Video")
    db.delete(video)
    db.commit()
    return {"success": True}

@admin_router.post("/files", response_model=FileOut, status_code=status.HTTP_201_CREATED)
def create_file(body: FileIn, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    stored = File(**body.model_dump())
    db.add(stored)
    db.commit()
    db.refresh(stored)
    return stored

@admin_router.put("/files/{file_id}", response_model=FileOut)
def update_file(file_id: int, body: FileUpdate, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    stored = _get_or_404(db, File, file_id, "File")
    _apply_updates(stored, body)
    db.commit()
    db.refresh(stored)
    return stored

@admin_router.delete("/files/{file_id}")
def delete_file(file_id: int, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    stored = _get_or_404(db, File, file_id, "File")
    db.delete(stored)
    db.commit()
    return {"success": True}

@admin_router.put("/visa/info/{visa_type}", response_model=VisaInfoOut)
def upsert_visa_info(visa_type: str, body: VisaInfoIn, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    info = db.query(VisaInfo).filter(VisaInfo.visa_type == visa_type).first()
    if info is None:
        info = VisaInfo(visa_type=visa_type, **body.model_dump())
        db.add(info)
    else:
        _apply_updates(info, body)
    db.commit()
    db.refresh(info)
    return info

@admin_router.post("/visa/{kind}/questions", response_model=VisaQuestionOut, status_code=status.HTTP_201_CREATED)
def create_visa_question(kind: str, body: VisaQuestionIn, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    model = _visa_question_model(kind)
    question = model(**body.model_dump(), order=_next_order(db, model))
    db.add(question)
    db.commit()
    db.refresh(question)
    return question

@admin_router.put("/visa/{kind}/questions/{question_id}", response_model=VisaQuestionOut)
def update_visa_question(
    kind: str,
    question_id: int,
    body: VisaQuestionUpdate,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    question = _get_or_404(db, _visa_question_model(kind), question_id, "Question")
    _apply_updates(question, body)
    db.commit()
    db.refresh(question)
    return question

@admin_router.delete("/visa/{kind}/questions/{question_id}")
def delete_visa_question(kind: str, question_id: int, admin_user: User = Depends(require_admin), db: Session = Depends(get_db)):
    question = _get_or_404(db, _visa_question_model(kind), question_id, "Question")
    db.delete(question)
    db.commit()
    return {"success": True}

# =====================================================================
# HEALTH ROUTES
# =====================================================================

@health_router.get("/redis")
def redis_health():
    if redis_service.ping():
        return {"status": "healthy", "redis": "connected"}
    return {"status": "unhealthy", "redis": "disconnected"}

@health_router.get("/")
def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0",
    }

# Register all routers
app.include_router(auth_router)
app.include_router(user_router)
app.include_router(ai_router)
app.include_router(membership_router)
app.include_router(payment_router)
app.include_router(questions_router)
app.include_router(comments_router)
app.include_router(content_router)
app.include_router(admin_router)
app.include_router(health_router)

# =========================
# ERROR HANDLERS
# =========================

@app.exception_handler(VisaboardError)
async def visaboard_error_handler(request: Request, exc: VisaboardError):
    content = {"detail": exc.message}
    content.update(getattr(exc, "payload", {}))
    return JSONResponse(status_code=exc.status_code, content=content)

@app.exception_handler(Exception)
async def custom_500_handler(request: Request, exc: Exception):
    logger.error(f"Internal Server Error: {exc.__class__.__name__}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": "An unexpected error occurred."},
    )

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "visaboard.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info",
    )
