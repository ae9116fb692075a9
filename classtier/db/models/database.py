from typing import Any, Optional
import datetime
import decimal
import uuid

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, ForeignKeyConstraint, Index, Integer, Numeric, PrimaryKeyConstraint, SmallInteger, String, Text, UniqueConstraint, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from classtier.libs.formats.datetime import now as get_now

JsonType = JSON().with_variant(JSONB(), 'postgresql')


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = 'users'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='users_pkey'),
        UniqueConstraint('email', name='users_email_key'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    fullname: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=get_now)

    classes: Mapped[list['Classes']] = relationship('Classes', back_populates='teacher')
    memberships: Mapped[list['Memberships']] = relationship('Memberships', back_populates='user')
    payments: Mapped[list['Payments']] = relationship('Payments', back_populates='user')


class Classes(Base):
    __tablename__ = 'classes'
    __table_args__ = (
        CheckConstraint('subscription_price >= 0', name='classes_subscription_price_check'),
        CheckConstraint('free_tier_lesson_count >= 0', name='classes_free_tier_lesson_count_check'),
        ForeignKeyConstraint(['teacher_id'], ['users.id'], ondelete='CASCADE', name='classes_teacher_id_fkey'),
        PrimaryKeyConstraint('id', name='classes_pkey'),
        Index('idx_classes_teacher_id', 'teacher_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    teacher_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    subscription_price: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=decimal.Decimal('0'))
    free_tier_lesson_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=get_now)

    teacher: Mapped['User'] = relationship('User', back_populates='classes')
    courses: Mapped[list['Courses']] = relationship('Courses', back_populates='class_')
    subscription_tiers: Mapped[list['SubscriptionTiers']] = relationship('SubscriptionTiers', back_populates='class_', order_by='SubscriptionTiers.tier_level')
    memberships: Mapped[list['Memberships']] = relationship('Memberships', back_populates='class_')


class Courses(Base):
    __tablename__ = 'courses'
    __table_args__ = (
        CheckConstraint('required_tier_level BETWEEN 0 AND 3', name='courses_required_tier_level_check'),
        ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='CASCADE', name='courses_class_id_fkey'),
        PrimaryKeyConstraint('id', name='courses_pkey'),
        Index('idx_courses_class_id', 'class_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    class_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    required_tier_level: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=get_now)

    class_: Mapped['Classes'] = relationship('Classes', back_populates='courses')
    lessons: Mapped[list['Lessons']] = relationship('Lessons', back_populates='course', order_by='Lessons.position')


class Lessons(Base):
    __tablename__ = 'lessons'
    __table_args__ = (
        ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='CASCADE', name='lessons_course_id_fkey'),
        PrimaryKeyConstraint('id', name='lessons_pkey'),
        Index('idx_lessons_course_position', 'course_id', 'position'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    course_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=get_now)

    course: Mapped['Courses'] = relationship('Courses', back_populates='lessons')


class SubscriptionTiers(Base):
    __tablename__ = 'subscription_tiers'
    __table_args__ = (
        CheckConstraint('price >= 0', name='subscription_tiers_price_check'),
        CheckConstraint('tier_level BETWEEN 0 AND 3', name='subscription_tiers_tier_level_check'),
        CheckConstraint('lesson_unlock_count IS NULL OR lesson_unlock_count >= 0', name='subscription_tiers_lesson_unlock_count_check'),
        ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='CASCADE', name='subscription_tiers_class_id_fkey'),
        PrimaryKeyConstraint('id', name='subscription_tiers_pkey'),
        UniqueConstraint('class_id', 'tier_level', name='subscription_tiers_class_level_key'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    class_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    tier_level: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    price: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=decimal.Decimal('0'))
    lesson_unlock_count: Mapped[Optional[int]] = mapped_column(Integer)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=get_now)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=get_now, onupdate=get_now)

    class_: Mapped['Classes'] = relationship('Classes', back_populates='subscription_tiers')
    tier_purchases: Mapped[list['TierPurchases']] = relationship('TierPurchases', back_populates='tier')


class Payments(Base):
    __tablename__ = 'payments'
    __table_args__ = (
        CheckConstraint('amount >= 0', name='payments_amount_check'),
        CheckConstraint("status IN ('pending', 'completed', 'failed')", name='payments_status_check'),
        ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='CASCADE', name='payments_class_id_fkey'),
        ForeignKeyConstraint(['tier_id'], ['subscription_tiers.id'], ondelete='SET NULL', name='payments_tier_id_fkey'),
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='payments_user_id_fkey'),
        PrimaryKeyConstraint('id', name='payments_pkey'),
        Index('idx_payments_user_created', 'user_id', 'created_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    class_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    tier_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    amount: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default='VND')
    status: Mapped[str] = mapped_column(String(16), nullable=False, default='pending')
    card_last_four: Mapped[Optional[str]] = mapped_column(String(4))
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    test_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    metadata_: Mapped[Optional[dict[str, Any]]] = mapped_column('metadata', JsonType)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=get_now)
    completed_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)

    user: Mapped['User'] = relationship('User', back_populates='payments')
    class_: Mapped['Classes'] = relationship('Classes')
    tier: Mapped[Optional['SubscriptionTiers']] = relationship('SubscriptionTiers')


class TierPurchases(Base):
    __tablename__ = 'tier_purchases'
    __table_args__ = (
        ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='CASCADE', name='tier_purchases_class_id_fkey'),
        ForeignKeyConstraint(['payment_id'], ['payments.id'], name='tier_purchases_payment_id_fkey'),
        ForeignKeyConstraint(['tier_id'], ['subscription_tiers.id'], name='tier_purchases_tier_id_fkey'),
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='tier_purchases_user_id_fkey'),
        PrimaryKeyConstraint('id', name='tier_purchases_pkey'),
        UniqueConstraint('user_id', 'class_id', name='tier_purchases_user_class_key'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    class_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    tier_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    payment_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    # bản sao tier.tier_level, để upsert chỉ ghi đè khi nâng cấp
    tier_level: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=get_now)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=get_now)

    tier: Mapped['SubscriptionTiers'] = relationship('SubscriptionTiers', back_populates='tier_purchases')
    payment: Mapped['Payments'] = relationship('Payments')


class Memberships(Base):
    __tablename__ = 'memberships'
    __table_args__ = (
        ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='CASCADE', name='memberships_class_id_fkey'),
        ForeignKeyConstraint(['last_payment_id'], ['payments.id'], ondelete='SET NULL', name='memberships_last_payment_id_fkey'),
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='memberships_user_id_fkey'),
        PrimaryKeyConstraint('id', name='memberships_pkey'),
        UniqueConstraint('class_id', 'user_id', name='memberships_class_user_key'),
        Index('idx_memberships_expiry', 'status', 'subscription_expires_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    class_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default='ACTIVE')
    subscription_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    subscription_expires_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    last_payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    joined_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=get_now)

    class_: Mapped['Classes'] = relationship('Classes', back_populates='memberships')
    user: Mapped['User'] = relationship('User', back_populates='memberships')


class ClassSubscriptions(Base):
    __tablename__ = 'class_subscriptions'
    __table_args__ = (
        ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='CASCADE', name='class_subscriptions_class_id_fkey'),
        ForeignKeyConstraint(['payment_id'], ['payments.id'], name='class_subscriptions_payment_id_fkey'),
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='class_subscriptions_user_id_fkey'),
        PrimaryKeyConstraint('id', name='class_subscriptions_pkey'),
        Index('idx_class_subscriptions_user_created', 'user_id', 'created_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    class_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    payment_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    amount: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default='VND')
    status: Mapped[str] = mapped_column(String(16), nullable=False, default='active')
    starts_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=get_now)

    class_: Mapped['Classes'] = relationship('Classes')
