from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    DECIMAL,
    Enum,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

Base = declarative_base()
metadata = Base.metadata


class User(Base):
    __tablename__ = "users"
    __table_args__ = (Index("email", "email", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(100), nullable=False)
    email = mapped_column(String(255), nullable=False)
    role = mapped_column(
        Enum("Client", "Stylist", "Admin", name="user_role"), nullable=False
    )
    is_active = mapped_column(Boolean, nullable=False, server_default=text("1"))
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    client_appointments: Mapped[List["Appointment"]] = relationship(
        "Appointment",
        uselist=True,
        back_populates="client",
        foreign_keys="Appointment.client_id",
    )
    staff_appointments: Mapped[List["Appointment"]] = relationship(
        "Appointment",
        uselist=True,
        back_populates="staff",
        foreign_keys="Appointment.staff_id",
    )


class Service(Base):
    __tablename__ = "services"
    __table_args__ = (
        CheckConstraint("duration_minutes >= 15", name="ck_service_min_duration"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    name = mapped_column(String(100), nullable=False)
    price = mapped_column(DECIMAL(10, 2), nullable=False, server_default=text("0"))
    duration_minutes = mapped_column(
        Integer, nullable=False, server_default=text("30")
    )
    is_active = mapped_column(Boolean, nullable=False, server_default=text("1"))
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    appointment_details: Mapped[List["AppointmentDetail"]] = relationship(
        "AppointmentDetail", uselist=True, back_populates="service"
    )


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        ForeignKeyConstraint(["client_id"], ["users.id"], name="fk_ap_client"),
        ForeignKeyConstraint(["staff_id"], ["users.id"], name="fk_ap_staff"),
        CheckConstraint(
            "discount_amount >= 0 AND discount_amount <= total_amount",
            name="ck_ap_discount_range",
        ),
        Index("ix_ap_client_start", "client_id", "start_at"),
        Index("ix_ap_staff_start", "staff_id", "start_at"),
        Index("ix_ap_status_start", "status", "start_at"),
    )

    id = mapped_column(Integer, primary_key=True)
    client_id = mapped_column(Integer, nullable=False)
    staff_id = mapped_column(Integer, nullable=False)
    start_at = mapped_column(DateTime, nullable=False)
    end_at = mapped_column(DateTime, nullable=False)
    status = mapped_column(
        Enum(
            "Pending", "Confirmed", "Completed", "Cancelled", name="appointment_status"
        ),
        nullable=False,
        server_default=text("'Pending'"),
    )
    total_amount = mapped_column(
        DECIMAL(10, 2), nullable=False, server_default=text("0")
    )
    discount_amount = mapped_column(
        DECIMAL(10, 2), nullable=False, server_default=text("0")
    )
    final_amount = mapped_column(
        DECIMAL(10, 2), nullable=False, server_default=text("0")
    )
    coupon_code = mapped_column(String(50))
    notes = mapped_column(Text)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(DateTime)

    client: Mapped["User"] = relationship(
        "User", back_populates="client_appointments", foreign_keys=[client_id]
    )
    staff: Mapped["User"] = relationship(
        "User", back_populates="staff_appointments", foreign_keys=[staff_id]
    )
    details: Mapped[List["AppointmentDetail"]] = relationship(
        "AppointmentDetail",
        uselist=True,
        back_populates="appointment",
        order_by="AppointmentDetail.id",
    )


class AppointmentDetail(Base):
    __tablename__ = "appointment_details"
    __table_args__ = (
        ForeignKeyConstraint(
            ["appointment_id"],
            ["appointments.id"],
            ondelete="CASCADE",
            name="fk_ad_appointment",
        ),
        ForeignKeyConstraint(["service_id"], ["services.id"], name="fk_ad_service"),
        Index("ix_ad_appointment", "appointment_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    appointment_id = mapped_column(Integer, nullable=False)
    service_id = mapped_column(Integer, nullable=False)
    service_price = mapped_column(DECIMAL(10, 2), nullable=False)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    appointment: Mapped["Appointment"] = relationship(
        "Appointment", back_populates="details"
    )
    service: Mapped[Optional["Service"]] = relationship(
        "Service", back_populates="appointment_details"
    )


class SalonSetting(Base):
    __tablename__ = "salon_settings"
    __table_args__ = (Index("key", "key", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    key = mapped_column(String(100), nullable=False)
    value = mapped_column(Text, nullable=False)
    type = mapped_column(String(20), nullable=False, server_default=text("'string'"))
    description = mapped_column(Text)
    updated_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


class Coupon(Base):
    __tablename__ = "coupons"
    __table_args__ = (
        Index("code", "code", unique=True),
        ForeignKeyConstraint(
            ["customer_id"], ["users.id"], ondelete="SET NULL", name="fk_coupon_user"
        ),
    )

    id = mapped_column(Integer, primary_key=True)
    code = mapped_column(String(50), nullable=False)
    type = mapped_column(Enum("percentage", "fixed", name="coupon_type"), nullable=False)
    value = mapped_column(DECIMAL(12, 2), nullable=False)
    min_amount = mapped_column(DECIMAL(12, 2), nullable=False, server_default=text("0"))
    expiry_date = mapped_column(Date, nullable=False)
    customer_id = mapped_column(Integer)
    description = mapped_column(String(255), nullable=False)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


class SchedulingLock(Base):
    __tablename__ = "scheduling_locks"
    __table_args__ = {"comment": "Named rows locked FOR UPDATE to serialize bookings."}

    name = mapped_column(String(50), primary_key=True)
