"""Receipt models"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DeviceCategory(str, Enum):
    """Device categories, in checklist order"""
    MOBILE = "Mobile"
    TABLET = "Tablet"
    LAPTOP = "Laptop"
    DESKTOP = "Desktop"
    SMARTWATCH = "Smartwatch"
    OTHER = "Other"


class ReceiptStatus(str, Enum):
    """Billing status of a receipt"""
    PENDING = "Pending"
    PAID = "Paid"
    OVERDUE = "Overdue"


class ReceiptDraft(BaseModel):
    """
    In-flight receipt being entered by staff

    Deliberately permissive: blank names or negative amounts are held
    here so the workflow can report them instead of failing on entry.
    """

    customer_name: str = Field(default="", description="Customer name (mandatory)")
    phone: str = Field(default="", description="Customer phone (mandatory)")
    address: str = Field(default="", description="Customer address")
    email: str = Field(default="", description="Customer email")
    device_category: DeviceCategory = Field(default=DeviceCategory.MOBILE)
    imei: str = Field(default="", description="Device IMEI")
    serial_number: str = Field(default="", description="Device serial number")
    issue: str = Field(default="", description="Reported fault")
    condition: str = Field(default="", description="Condition on intake")
    total_amount: Decimal = Field(default=Decimal("0"), description="Amount due")
    status: ReceiptStatus = Field(default=ReceiptStatus.PENDING)
    external_link: Optional[str] = Field(default=None, description="Opaque link")

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )


class Receipt(BaseModel):
    """
    Persisted repair receipt

    Stored with camelCase field names; store_key is the document key
    and is never written as a field.
    """

    receipt_number: str = Field(..., description="PFX-YYYY-#### identifier")
    store_key: Optional[str] = Field(default=None, description="Document key assigned by the store")
    customer_name: str
    phone: str
    address: str = ""
    email: str = ""
    device_category: DeviceCategory = DeviceCategory.MOBILE
    imei: str = ""
    serial_number: str = ""
    issue: str = ""
    condition: str = ""
    total_amount: Decimal = Field(..., ge=0)
    amount_in_words: str = Field(..., description="Words computed once at creation")
    created_at: Optional[datetime] = Field(default=None, description="Server timestamp")
    created_by: str = Field(default="", description="Caller identity")
    status: ReceiptStatus = ReceiptStatus.PENDING
    message_sent: bool = False
    external_link: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_record(self) -> Dict[str, Any]:
        """Serialize for the remote collection, without key or timestamp"""
        return self.model_dump(
            mode="json",
            by_alias=True,
            exclude={"store_key", "created_at"},
        )

    @classmethod
    def from_record(
        cls,
        key: str,
        data: Mapping[str, Any],
        created_at: Optional[datetime] = None,
    ) -> "Receipt":
        """Build a receipt from a stored document"""
        fields = {k: v for k, v in data.items() if k != "createdAt"}
        return cls.model_validate({**fields, "storeKey": key, "createdAt": created_at})
