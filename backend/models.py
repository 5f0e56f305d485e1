"""
models.py — SQLAlchemy Database Models
=======================================

Defines the data schema for the SmartVid platform:
  • Profile / AdminUser   — account data & admin roles
  • VideoProject          — one generated video and its render state
  • Template / TemplateData
  • Notification
  • Subscription / UserQuota — billing state & per-plan limits
  • RenderLog / UserActivity — admin console audit trail
  • BlogPost / Script
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, Float, Text, DateTime, Boolean,
    ForeignKey, JSON,
)
from sqlalchemy.orm import relationship

from database import Base


def _uuid() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ─────────────────────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────────────────────

class ProjectStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PlanType(str, enum.Enum):
    FREE = "free"
    PRO = "pro"
    BUSINESS = "business"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELED = "canceled"


class NotificationType(str, enum.Enum):
    VIDEO = "video"
    PAYMENT = "payment"
    ACCOUNT = "account"
    NEWSLETTER = "newsletter"


class AdminRole(str, enum.Enum):
    ADMIN = "admin"
    SUPPORT = "support"
    SUPER_ADMIN = "super_admin"


# ─────────────────────────────────────────────────────────────
# Profile & admin
# ─────────────────────────────────────────────────────────────

class Profile(Base):
    __tablename__ = "profiles"

    # Same id as the auth subject
    id = Column(String, primary_key=True)
    email = Column(String, nullable=True, index=True)
    username = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    projects = relationship("VideoProject", back_populates="user", lazy="dynamic")
    quota = relationship("UserQuota", back_populates="user", uselist=False)

    def __repr__(self):
        return f"<Profile {self.email}>"


class AdminUser(Base):
    __tablename__ = "admin_users"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, unique=True)
    role = Column(String, default=AdminRole.ADMIN.value)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)


# ─────────────────────────────────────────────────────────────
# Video projects
# ─────────────────────────────────────────────────────────────

class VideoProject(Base):
    __tablename__ = "video_projects"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)

    title = Column(String, nullable=False)
    prompt = Column(Text, nullable=True)
    status = Column(String, default=ProjectStatus.PENDING.value, index=True)

    # Generation options
    style = Column(String, nullable=True)
    media_source = Column(String, nullable=True)
    brand_colors = Column(String, nullable=True)
    voice_type = Column(String, nullable=True)
    narration_script = Column(Text, nullable=True)
    scenes = Column(JSON, nullable=True)
    has_audio = Column(Boolean, default=False)
    has_captions = Column(Boolean, default=False)

    # Output
    video_url = Column(String, nullable=True)
    thumbnail_url = Column(String, nullable=True)
    audio_url = Column(String, nullable=True)
    duration = Column(Float, nullable=True)

    # Render tracking
    render_id = Column(String, nullable=True, index=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_now, index=True)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    user = relationship("Profile", back_populates="projects")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "prompt": self.prompt,
            "status": self.status,
            "style": self.style,
            "media_source": self.media_source,
            "brand_colors": self.brand_colors,
            "voice_type": self.voice_type,
            "narration_script": self.narration_script,
            "scenes": self.scenes,
            "has_audio": bool(self.has_audio),
            "has_captions": bool(self.has_captions),
            "video_url": self.video_url,
            "thumbnail_url": self.thumbnail_url,
            "audio_url": self.audio_url,
            "duration": self.duration,
            "render_id": self.render_id,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<VideoProject {self.id[:8]} status={self.status}>"


# ─────────────────────────────────────────────────────────────
# Templates
# ─────────────────────────────────────────────────────────────

class Template(Base):
    __tablename__ = "templates"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=True, index=True)
    thumbnail = Column(String, nullable=True)
    is_premium = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    data = relationship(
        "TemplateData", back_populates="template", uselist=False,
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "thumbnail": self.thumbnail,
            "is_premium": bool(self.is_premium),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class TemplateData(Base):
    __tablename__ = "template_data"

    id = Column(String, primary_key=True, default=_uuid)
    template_id = Column(String, ForeignKey("templates.id"), nullable=False, unique=True)
    template_json = Column(JSON, nullable=False)
    variables = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    template = relationship("Template", back_populates="data")


# ─────────────────────────────────────────────────────────────
# Notifications
# ─────────────────────────────────────────────────────────────

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String, nullable=False)
    is_read = Column(Boolean, default=False)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_now, index=True)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "is_read": bool(self.is_read),
            "metadata": self.meta,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ─────────────────────────────────────────────────────────────
# Billing
# ─────────────────────────────────────────────────────────────

class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=True, index=True)

    plan_name = Column(String, nullable=False, default=PlanType.PRO.value)
    status = Column(String, nullable=False, default=SubscriptionStatus.ACTIVE.value)
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)

    # Stripe
    stripe_customer_id = Column(String, nullable=True, index=True)
    stripe_subscription_id = Column(String, nullable=True, index=True)

    # Paystack
    paystack_customer_code = Column(String, nullable=True)
    paystack_card_signature = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "plan_name": self.plan_name,
            "status": self.status,
            "current_period_start": (
                self.current_period_start.isoformat() if self.current_period_start else None
            ),
            "current_period_end": (
                self.current_period_end.isoformat() if self.current_period_end else None
            ),
            "stripe_customer_id": self.stripe_customer_id,
            "stripe_subscription_id": self.stripe_subscription_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Subscription {self.user_id} plan={self.plan_name} status={self.status}>"


class UserQuota(Base):
    __tablename__ = "user_quotas"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, unique=True)

    plan_type = Column(String, default=PlanType.FREE.value)
    monthly_limit = Column(Integer, nullable=False)
    current_usage = Column(Integer, default=0)
    storage_limit_mb = Column(Integer, default=0)
    storage_used_mb = Column(Integer, default=0)
    reset_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    user = relationship("Profile", back_populates="quota")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "plan_type": self.plan_type,
            "monthly_limit": self.monthly_limit,
            "current_usage": self.current_usage,
            "storage_limit_mb": self.storage_limit_mb,
            "storage_used_mb": self.storage_used_mb,
            "reset_date": self.reset_date.isoformat() if self.reset_date else None,
        }


# ─────────────────────────────────────────────────────────────
# Admin audit trail
# ─────────────────────────────────────────────────────────────

class RenderLog(Base):
    __tablename__ = "render_logs"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    video_project_id = Column(String, ForeignKey("video_projects.id"), nullable=True)
    render_id = Column(String, nullable=True, index=True)

    status = Column(String, nullable=False, index=True)
    template_name = Column(String, nullable=True)
    duration = Column(Float, nullable=True)
    error_message = Column(Text, nullable=True)
    error_code = Column(String, nullable=True)
    retry_count = Column(Integer, default=0)
    meta = Column("metadata", JSON, nullable=True)

    started_at = Column(DateTime(timezone=True), default=_now, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)

    user = relationship("Profile")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "video_project_id": self.video_project_id,
            "render_id": self.render_id,
            "status": self.status,
            "template_name": self.template_name,
            "duration": self.duration,
            "error_message": self.error_message,
            "error_code": self.error_code,
            "retry_count": self.retry_count or 0,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "user_email": self.user.email if self.user else None,
        }


class UserActivity(Base):
    __tablename__ = "user_activity"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    activity_type = Column(String, nullable=False)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    meta = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_now)


# ─────────────────────────────────────────────────────────────
# Content
# ─────────────────────────────────────────────────────────────

class BlogPost(Base):
    __tablename__ = "blog_posts"

    id = Column(String, primary_key=True, default=_uuid)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    category = Column(String, nullable=True)
    thumbnail = Column(String, nullable=True)
    is_premium = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=True)


class Script(Base):
    __tablename__ = "scripts"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    type = Column(String, default="scene-breakdown")

    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)
