from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements INTEGER primary keys.
BigIntPK = BigInteger().with_variant(Integer, 'sqlite')
Money = Numeric(12, 2)


class Base(DeclarativeBase):
    pass


class PrincipalRole(str, Enum):
    ADMIN = 'ADMIN'
    MANAGER = 'MANAGER'
    STAFF = 'STAFF'
    CUSTOMER = 'CUSTOMER'


class EmployeeStatus(str, Enum):
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'


class CommissionType(str, Enum):
    NONE = 'NONE'
    FLAT = 'FLAT'
    TIERED = 'TIERED'


class ApprovalStatus(str, Enum):
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    DECLINED = 'DECLINED'


class AppointmentStatus(str, Enum):
    BOOKED = 'BOOKED'
    CONFIRMED = 'CONFIRMED'
    INPROGRESS = 'INPROGRESS'
    COMPLETED = 'COMPLETED'
    PAID = 'PAID'
    CANCELED = 'CANCELED'
    NOSHOW = 'NOSHOW'


class BookingStatus(str, Enum):
    BOOKED = 'BOOKED'
    CONFIRMED = 'CONFIRMED'
    COMPLETED = 'COMPLETED'
    CANCELED = 'CANCELED'


class DiscountType(str, Enum):
    NONE = 'NONE'
    PERCENTAGE = 'PERCENTAGE'
    FIXED = 'FIXED'


class MembershipStatus(str, Enum):
    ACTIVE = 'ACTIVE'
    EXPIRED = 'EXPIRED'
    CANCELED = 'CANCELED'


class ItemStatus(str, Enum):
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'


class PurchaseOrderStatus(str, Enum):
    DRAFT = 'DRAFT'
    ORDERED = 'ORDERED'
    RECEIVED = 'RECEIVED'
    CANCELLED = 'CANCELLED'


class PayRunStatus(str, Enum):
    DRAFT = 'DRAFT'
    APPROVED = 'APPROVED'
    PAID = 'PAID'
    CANCELLED = 'CANCELLED'


class CompensationType(str, Enum):
    SALARY = 'SALARY'
    COMMISSION = 'COMMISSION'
    TIP = 'TIP'
    ADJUSTMENT = 'ADJUSTMENT'


class Location(Base):
    __tablename__ = 'locations'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[str | None] = mapped_column(Text)
    phone: Mapped[str | None] = mapped_column(Text)
    service_tax_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('tax_rates.id'))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Customer(Base):
    __tablename__ = 'customers'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    phone_number: Mapped[str | None] = mapped_column(Text, unique=True)
    email: Mapped[str | None] = mapped_column(Text)
    wallet_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    cashback_balance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'), server_default='0')
    last_used: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (CheckConstraint('wallet_balance >= 0', name='customers_wallet_non_negative'),)


class Principal(Base):
    __tablename__ = 'principals'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    username: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[PrincipalRole] = mapped_column(SQLEnum(PrincipalRole, name='principal_role'), nullable=False)
    employee_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('employees.id'))
    customer_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('customers.id'))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuthEvent(Base):
    __tablename__ = 'auth_events'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    attempted_username: Mapped[str] = mapped_column(Text, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    failure_reason: Mapped[str | None] = mapped_column(Text)
    principal_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('principals.id'))
    ip: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    actor_principal_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('principals.id'))
    action: Mapped[str] = mapped_column(Text, nullable=False)
    appointment_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('appointments.id'))
    ip: Mapped[str | None] = mapped_column(String(64))
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class WebSession(Base):
    __tablename__ = 'web_sessions'
    __table_args__ = (
        UniqueConstraint('session_token', name='web_sessions_session_token_key'),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    session_token: Mapped[str] = mapped_column(String(128), nullable=False)
    principal_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('principals.id'), nullable=False)
    ip: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class ServiceCategory(Base):
    __tablename__ = 'service_categories'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Service(Base):
    __tablename__ = 'services'
    __table_args__ = (
        CheckConstraint('duration >= 0', name='services_duration_non_negative'),
        CheckConstraint('selling_price >= 0', name='services_price_non_negative'),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    category_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('service_categories.id'))
    description: Mapped[str | None] = mapped_column(Text)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    selling_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    cost_price: Mapped[Decimal | None] = mapped_column(Money)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Package(Base):
    __tablename__ = 'packages'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    duration: Mapped[int | None] = mapped_column(Integer)
    is_customizable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PackageService(Base):
    __tablename__ = 'package_services'

    package_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('packages.id', ondelete='CASCADE'), primary_key=True)
    service_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('services.id', ondelete='CASCADE'), primary_key=True)
    package_selling_price: Mapped[Decimal | None] = mapped_column(Money)


class Employee(Base):
    __tablename__ = 'employees'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str | None] = mapped_column(Text)
    phone: Mapped[str | None] = mapped_column(Text)
    status: Mapped[EmployeeStatus] = mapped_column(
        SQLEnum(EmployeeStatus, name='employee_status'),
        nullable=False,
        default=EmployeeStatus.ACTIVE,
        server_default='ACTIVE',
    )
    can_perform_services: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    commission_type: Mapped[CommissionType] = mapped_column(
        SQLEnum(CommissionType, name='commission_type'),
        nullable=False,
        default=CommissionType.NONE,
        server_default='NONE',
    )
    hourly_rate: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'), server_default='0')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class EmployeeSkill(Base):
    __tablename__ = 'employee_skills'

    employee_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('employees.id', ondelete='CASCADE'), primary_key=True)
    service_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('services.id', ondelete='CASCADE'), primary_key=True)


class EmployeeLocation(Base):
    __tablename__ = 'employee_locations'

    employee_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('employees.id', ondelete='CASCADE'), primary_key=True)
    location_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('locations.id', ondelete='CASCADE'), primary_key=True)


class RecurringShift(Base):
    __tablename__ = 'recurring_shifts'
    __table_args__ = (
        CheckConstraint('day_of_week BETWEEN 0 AND 6', name='recurring_shifts_day_range'),
        CheckConstraint('end_time > start_time', name='recurring_shifts_end_after_start'),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    employee_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('employees.id', ondelete='CASCADE'), nullable=False)
    location_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('locations.id'), nullable=False)
    # 0 = Sunday .. 6 = Saturday
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Shift(Base):
    __tablename__ = 'shifts'
    __table_args__ = (CheckConstraint('end_time > start_time', name='shifts_end_after_start'),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    employee_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('employees.id', ondelete='CASCADE'), nullable=False)
    location_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('locations.id'), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[ApprovalStatus] = mapped_column(
        SQLEnum(ApprovalStatus, name='approval_status'),
        nullable=False,
        default=ApprovalStatus.APPROVED,
        server_default='APPROVED',
    )
    is_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class TimeOffRequest(Base):
    __tablename__ = 'time_off_requests'
    __table_args__ = (CheckConstraint('end_date >= start_date', name='time_off_end_after_start'),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    employee_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('employees.id', ondelete='CASCADE'), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    status: Mapped[ApprovalStatus] = mapped_column(
        SQLEnum(ApprovalStatus, name='approval_status'),
        nullable=False,
        default=ApprovalStatus.PENDING,
        server_default='PENDING',
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class TaxRate(Base):
    __tablename__ = 'tax_rates'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    percentage: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')


class Coupon(Base):
    __tablename__ = 'coupons'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text)
    discount_type: Mapped[DiscountType] = mapped_column(SQLEnum(DiscountType, name='discount_type'), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Money, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Membership(Base):
    __tablename__ = 'memberships'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'), server_default='0')
    validity_months: Mapped[int] = mapped_column(Integer, nullable=False, default=12, server_default='12')
    discount_type: Mapped[DiscountType] = mapped_column(SQLEnum(DiscountType, name='discount_type'), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Money, nullable=False)
    # Empty list means every service (or package) qualifies.
    applicable_services: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    applicable_packages: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class CustomerMembership(Base):
    __tablename__ = 'customer_memberships'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    customer_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('customers.id', ondelete='CASCADE'), nullable=False)
    membership_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('memberships.id'), nullable=False)
    status: Mapped[MembershipStatus] = mapped_column(
        SQLEnum(MembershipStatus, name='membership_status'),
        nullable=False,
        default=MembershipStatus.ACTIVE,
        server_default='ACTIVE',
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'), server_default='0')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class LoyaltyProgramSettings(Base):
    __tablename__ = 'loyalty_program_settings'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    # Points earned per 100 currency units spent.
    points_per_spend: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('1'))
    point_value: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False, default=Decimal('1'))
    min_redemption_points: Mapped[int] = mapped_column(Integer, nullable=False, default=100, server_default='100')
    min_billing_amount: Mapped[Decimal | None] = mapped_column(Money)
    apply_to_all: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    applicable_services: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    applicable_packages: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    points_validity_days: Mapped[int | None] = mapped_column(Integer)
    max_redemption_type: Mapped[DiscountType | None] = mapped_column(SQLEnum(DiscountType, name='discount_type'))
    max_redemption_value: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Appointment(Base):
    __tablename__ = 'appointments'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    customer_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('customers.id'), nullable=False)
    location_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('locations.id'))
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        SQLEnum(AppointmentStatus, name='appointment_status'),
        nullable=False,
        default=AppointmentStatus.CONFIRMED,
        server_default='CONFIRMED',
    )
    total_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    number_of_bookings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subtotal: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    discount_type: Mapped[DiscountType] = mapped_column(
        SQLEnum(DiscountType, name='discount_type'), nullable=False, default=DiscountType.NONE
    )
    discount_value: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    manual_discount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    membership_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('memberships.id'))
    membership_name: Mapped[str | None] = mapped_column(Text)
    membership_discount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    coupon_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('coupons.id'))
    coupon_discount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    points_redeemed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points_discount_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tax_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('tax_rates.id'))
    tax_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    round_off_difference: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    total_price: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    original_total_price: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    payment_method: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    transaction_type: Mapped[str] = mapped_column(Text, nullable=False, default='sale')
    reminder_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_by_principal_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('principals.id'))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Booking(Base):
    __tablename__ = 'bookings'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    appointment_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('appointments.id', ondelete='CASCADE'), nullable=False)
    service_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('services.id'))
    package_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('packages.id'))
    employee_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('employees.id'))
    status: Mapped[BookingStatus] = mapped_column(
        SQLEnum(BookingStatus, name='booking_status'),
        nullable=False,
        default=BookingStatus.CONFIRMED,
        server_default='CONFIRMED',
    )
    price_paid: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    original_price: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    start_time: Mapped[datetime | None] = mapped_column(DateTime)
    end_time: Mapped[datetime | None] = mapped_column(DateTime)
    commission_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Supplier(Base):
    __tablename__ = 'suppliers'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    contact_name: Mapped[str | None] = mapped_column(Text)
    email: Mapped[str | None] = mapped_column(Text)
    phone: Mapped[str | None] = mapped_column(Text)
    address: Mapped[str | None] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class InventoryItem(Base):
    __tablename__ = 'inventory_items'
    __table_args__ = (CheckConstraint('quantity >= 0', name='inventory_items_quantity_non_negative'),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(Text)
    unit_of_quantity: Mapped[str] = mapped_column(Text, nullable=False, default='unit')
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=Decimal('0'))
    minimum_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=Decimal('0'))
    max_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=Decimal('0'))
    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    supplier_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('suppliers.id'))
    status: Mapped[ItemStatus] = mapped_column(
        SQLEnum(ItemStatus, name='item_status'), nullable=False, default=ItemStatus.ACTIVE, server_default='ACTIVE'
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ServiceInventoryRequirement(Base):
    __tablename__ = 'service_inventory_requirements'

    service_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('services.id', ondelete='CASCADE'), primary_key=True)
    item_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('inventory_items.id', ondelete='CASCADE'), primary_key=True)
    quantity_required: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)


class PurchaseOrder(Base):
    __tablename__ = 'purchase_orders'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    supplier_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('suppliers.id'), nullable=False)
    status: Mapped[PurchaseOrderStatus] = mapped_column(
        SQLEnum(PurchaseOrderStatus, name='purchase_order_status'),
        nullable=False,
        default=PurchaseOrderStatus.DRAFT,
        server_default='DRAFT',
    )
    invoice_number: Mapped[str | None] = mapped_column(Text)
    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_by_principal_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('principals.id'))
    ordered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    received_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PurchaseOrderItem(Base):
    __tablename__ = 'purchase_order_items'
    __table_args__ = (CheckConstraint('quantity > 0', name='purchase_order_items_quantity_positive'),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    purchase_order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('purchase_orders.id', ondelete='CASCADE'), nullable=False
    )
    item_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('inventory_items.id'), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0'))
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False, default=Decimal('0'))
    received_quantity: Mapped[Decimal | None] = mapped_column(Numeric(12, 3))


class FlatCommissionRule(Base):
    __tablename__ = 'flat_commission_rules'

    employee_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('employees.id', ondelete='CASCADE'), primary_key=True)
    service_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('services.id', ondelete='CASCADE'), primary_key=True)
    percentage: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False)


class TieredCommissionSlab(Base):
    __tablename__ = 'tiered_commission_slabs'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    employee_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('employees.id', ondelete='CASCADE'), nullable=False)
    min_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    max_amount: Mapped[Decimal | None] = mapped_column(Money)
    percentage: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class PayPeriod(Base):
    __tablename__ = 'pay_periods'
    __table_args__ = (UniqueConstraint('start_date', 'end_date', name='pay_periods_range_key'),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PayRun(Base):
    __tablename__ = 'pay_runs'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    pay_period_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('pay_periods.id'), nullable=False)
    location_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('locations.id'))
    name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[PayRunStatus] = mapped_column(
        SQLEnum(PayRunStatus, name='pay_run_status'), nullable=False, default=PayRunStatus.DRAFT, server_default='DRAFT'
    )
    is_supplementary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    paid_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PayRunItem(Base):
    __tablename__ = 'pay_run_items'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    pay_run_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('pay_runs.id', ondelete='CASCADE'), nullable=False)
    employee_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('employees.id'), nullable=False)
    compensation_type: Mapped[CompensationType] = mapped_column(
        SQLEnum(CompensationType, name='compensation_type'), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    source_booking_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('bookings.id'))
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
