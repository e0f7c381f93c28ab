"""SQLAlchemy database models."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Table,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID as PostgresUUID
from sqlalchemy.orm import declarative_base

from appointment_booking.domain.entities.appointment import AssignmentMode, BookMode
from appointment_booking.domain.entities.booking import BookingStatus, PaymentStatus

Base = declarative_base()


organization_providers = Table(
    "organization_providers",
    Base.metadata,
    Column("organization_id", PostgresUUID(as_uuid=True), ForeignKey("organizations.id"), primary_key=True),
    Column("provider_id", PostgresUUID(as_uuid=True), ForeignKey("providers.id"), primary_key=True),
)


class OrganizationModel(Base):
    """SQLAlchemy model for organizations."""

    __tablename__ = "organizations"

    id = Column(PostgresUUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False)

    # Persisted shape: [{"day": "MONDAY", "from": "09:00", "to": "17:00"}]
    business_hours = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<OrganizationModel(id={self.id}, name='{self.name}')>"


class ProviderModel(Base):
    """Lockable row per provider (a member user who serves BY_USER appointments)."""

    __tablename__ = "providers"

    id = Column(PostgresUUID(as_uuid=True), primary_key=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<ProviderModel(id={self.id})>"


class ResourceModel(Base):
    """SQLAlchemy model for bookable resources."""

    __tablename__ = "resources"

    id = Column(PostgresUUID(as_uuid=True), primary_key=True, default=uuid4)
    organization_id = Column(PostgresUUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    capacity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<ResourceModel(id={self.id}, name='{self.name}', capacity={self.capacity})>"


class AppointmentTypeModel(Base):
    """SQLAlchemy model for appointment types."""

    __tablename__ = "appointment_types"

    id = Column(PostgresUUID(as_uuid=True), primary_key=True, default=uuid4)
    organization_id = Column(PostgresUUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(500), nullable=True)
    duration_minutes = Column(Integer, nullable=False)

    book_mode = Column(SQLEnum(BookMode), nullable=False)
    assignment_mode = Column(SQLEnum(AssignmentMode), nullable=False, default=AssignmentMode.BY_VISITOR)

    schedule = Column(JSON, nullable=False, default=list)

    # [{"id": ..., "question": ..., "type": ..., "required": ..., "options": [...]}]
    questions = Column(JSON, nullable=False, default=list)
    intro_message = Column(Text, nullable=True)
    confirmation_message = Column(Text, nullable=True)

    # Ordered ID lists; order breaks load ties in automatic assignment
    allowed_provider_ids = Column(JSON, nullable=False, default=list)
    allowed_resource_ids = Column(JSON, nullable=False, default=list)

    allow_multiple_slots = Column(Boolean, nullable=False, default=False)
    max_slots_per_booking = Column(Integer, nullable=True)

    is_paid = Column(Boolean, nullable=False, default=False)
    price_per_slot = Column(Numeric(10, 2), nullable=True)
    cancellation_lead_hours = Column(Integer, nullable=False, default=0)

    is_published = Column(Boolean, nullable=False, default=False, index=True)
    secret_link_token = Column(String(64), nullable=True, unique=True, index=True)
    secret_link_expiry_time = Column(DateTime, nullable=True)
    secret_link_expiry_capacity = Column(Integer, nullable=True)

    bookings_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<AppointmentTypeModel(id={self.id}, title='{self.title}', published={self.is_published})>"


class BookingModel(Base):
    """SQLAlchemy model for bookings."""

    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_resource_window", "resource_id", "start_time", "end_time"),
        Index("ix_bookings_provider_window", "assigned_provider_id", "start_time", "end_time"),
    )

    id = Column(PostgresUUID(as_uuid=True), primary_key=True, default=uuid4)
    appointment_id = Column(PostgresUUID(as_uuid=True), ForeignKey("appointment_types.id"), nullable=False, index=True)
    booker_user_id = Column(PostgresUUID(as_uuid=True), nullable=False, index=True)

    # Exactly one of these is set, depending on the appointment's book mode
    resource_id = Column(PostgresUUID(as_uuid=True), ForeignKey("resources.id"), nullable=True)
    assigned_provider_id = Column(PostgresUUID(as_uuid=True), ForeignKey("providers.id"), nullable=True)

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    number_of_slots = Column(Integer, nullable=False, default=1)

    status = Column(SQLEnum(BookingStatus), nullable=False, default=BookingStatus.PENDING)
    payment_status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    user_responses = Column(JSON, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<BookingModel(id={self.id}, start_time={self.start_time}, status='{self.status}')>"
