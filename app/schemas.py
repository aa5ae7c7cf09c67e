from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models import AppointmentStatus, ApprovalStatus, DiscountType, ItemStatus, PayRunStatus


class LoginRequest(BaseModel):
    username: str
    password: str


class CustomerCreate(BaseModel):
    full_name: str
    phone_number: str | None = None
    email: str | None = None


class ServiceCreate(BaseModel):
    name: str
    duration: int = Field(gt=0)
    selling_price: Decimal = Field(ge=0)
    cost_price: Decimal | None = None
    category_id: int | None = None
    description: str | None = None


class ServiceUpdate(BaseModel):
    name: str | None = None
    duration: int | None = Field(default=None, gt=0)
    selling_price: Decimal | None = Field(default=None, ge=0)
    active: bool | None = None


class PackageCreate(BaseModel):
    name: str
    price: Decimal = Field(ge=0)
    services: dict[int, Decimal | None]
    duration: int | None = None
    is_customizable: bool = False
    description: str | None = None


class WizardStepChoice(BaseModel):
    stylist_id: int
    day: date
    time: str


class WizardProgress(BaseModel):
    service_ids: list[int] = Field(min_length=1)
    steps: list[WizardStepChoice] = []
    location_id: int | None = None


class WizardSubmit(WizardProgress):
    customer_id: int | None = None
    notes: str | None = None


class AppointmentCreate(BaseModel):
    customer_id: int | None
    day: date | None
    time: str
    service_ids: list[int] = []
    package_ids: list[int] = []
    stylists: dict[int, int] = {}
    package_stylists: dict[int, int] = {}
    customized_services: dict[int, list[int]] = {}
    adjusted_prices: dict[int, Decimal] = {}
    discount_type: DiscountType = DiscountType.NONE
    discount_value: Decimal = Decimal('0')
    payment_method: str | None = None
    notes: str | None = None
    location_id: int | None = None


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


class RegularShift(BaseModel):
    start: str
    end: str


class RegularDay(BaseModel):
    enabled: bool
    shifts: list[RegularShift] = []


class RegularShiftsUpdate(BaseModel):
    location_id: int
    days: dict[int, RegularDay]


class SpecificShiftCreate(BaseModel):
    location_id: int
    start_time: datetime
    end_time: datetime
    status: ApprovalStatus = ApprovalStatus.APPROVED


class TimeOffCreate(BaseModel):
    start_date: date
    end_date: date
    reason: str | None = None


class ApprovalUpdate(BaseModel):
    status: ApprovalStatus


class InventoryItemCreate(BaseModel):
    name: str
    unit_of_quantity: str = 'unit'
    quantity: Decimal = Decimal('0')
    minimum_quantity: Decimal = Decimal('0')
    max_quantity: Decimal = Decimal('0')
    unit_price: Decimal = Decimal('0')
    supplier_id: int | None = None
    category: str | None = None


class InventoryItemUpdate(BaseModel):
    name: str | None = None
    minimum_quantity: Decimal | None = None
    max_quantity: Decimal | None = None
    unit_price: Decimal | None = None
    supplier_id: int | None = None
    status: ItemStatus | None = None


class StockAdjustment(BaseModel):
    delta: Decimal
    reason: str | None = None


class SupplierCreate(BaseModel):
    name: str
    contact_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None


class ServiceRequirements(BaseModel):
    requirements: dict[int, Decimal]


class PurchaseOrderLineIn(BaseModel):
    item_id: int
    quantity: Decimal = Field(gt=0)
    unit_price: Decimal = Decimal('0')
    tax_rate: Decimal = Decimal('0')


class PurchaseOrderCreate(BaseModel):
    supplier_id: int
    lines: list[PurchaseOrderLineIn] = Field(min_length=1)
    invoice_number: str | None = None
    notes: str | None = None


class PurchaseOrderReceive(BaseModel):
    received_quantities: dict[int, Decimal] = {}


class CheckoutRequest(BaseModel):
    coupon_code: str | None = None
    tax_id: int | None = None
    points_to_redeem: int = Field(default=0, ge=0)
    payment_method: str | None = None


class LoyaltySettingsUpdate(BaseModel):
    enabled: bool
    points_per_spend: Decimal = Field(ge=0)
    point_value: Decimal = Field(default=Decimal('1'), gt=0)
    min_redemption_points: int = Field(default=100, ge=0)
    min_billing_amount: Decimal | None = None
    apply_to_all: bool = True
    applicable_services: list[int] = []
    applicable_packages: list[int] = []
    points_validity_days: int | None = None
    max_redemption_type: DiscountType | None = None
    max_redemption_value: Decimal | None = None


class MembershipCreate(BaseModel):
    name: str
    discount_type: DiscountType
    discount_value: Decimal = Field(ge=0)
    price: Decimal = Field(default=Decimal('0'), ge=0)
    validity_months: int = Field(default=12, gt=0)
    applicable_services: list[int] = []
    applicable_packages: list[int] = []


class MembershipSale(BaseModel):
    customer_id: int
    membership_id: int
    start_date: date | None = None
    amount_paid: Decimal | None = None


class CouponCreate(BaseModel):
    code: str
    discount_type: DiscountType
    discount_value: Decimal = Field(ge=0)
    description: str | None = None


class CommissionSlabIn(BaseModel):
    min_amount: Decimal = Field(ge=0)
    max_amount: Decimal | None = None
    percentage: Decimal = Field(ge=0, le=100)
    order_index: int = 0


class CommissionRulesUpdate(BaseModel):
    flat_rules: dict[int, Decimal] = {}
    slabs: list[CommissionSlabIn] = []


class PayRunCreate(BaseModel):
    start_date: date
    end_date: date
    location_id: int | None = None
    name: str | None = None
    only_unpaid: bool = False


class PayRunAdjustment(BaseModel):
    employee_id: int
    amount: Decimal = Field(gt=0)
    kind: str = 'other'
    is_addition: bool = True
    description: str | None = None


class PayRunStatusUpdate(BaseModel):
    status: PayRunStatus
