"""
Shared fixtures for unit tests
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional, Union

import pytest
import requests

from repair_receipts.config import (
    ReceiptConfig,
    ShopProfile,
    StoreConfig,
    TextServiceConfig,
)
from repair_receipts.models import DeviceCategory, Receipt


class FakeSession:
    """Stands in for requests.Session, replaying queued responses"""

    def __init__(self, responses: List[Union[requests.Response, Exception]]) -> None:
        self.responses = list(responses)
        self.sent: List[requests.PreparedRequest] = []
        self.headers = {"Content-Type": "application/json", "Accept": "application/json"}
        self.closed = False

    def prepare_request(self, request: requests.Request) -> requests.PreparedRequest:
        return request.prepare()

    def send(self, prepared: requests.PreparedRequest, timeout: Optional[float] = None) -> requests.Response:
        self.sent.append(prepared)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


def build_response(status: int, body: Any = None, text: str = "") -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = "Too Many Requests" if status == 429 else "Status"
    response.url = "https://text.example.test/models/test:generateContent"
    response.encoding = "utf-8"
    if body is not None:
        response._content = json.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    else:
        response._content = text.encode("utf-8")
    return response


def text_reply(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def reply():
    return text_reply


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def shop() -> ShopProfile:
    return ShopProfile(
        name="iPremium Care",
        tagline="Mobile & Laptop Repairs",
        address_lines=["12 MG Road", "Bengaluru 560001"],
        phone="+91 80 1234 5678",
        email="care@ipremium.example",
    )


@pytest.fixture
def store_config() -> StoreConfig:
    return StoreConfig(app_id="repair-desk")


@pytest.fixture
def text_config() -> TextServiceConfig:
    return TextServiceConfig(
        api_key="secret-key",
        base_url="https://text.example.test",
        model="test",
        retry_delay=1000,
    )


@pytest.fixture
def receipt_config(shop: ShopProfile, store_config: StoreConfig) -> ReceiptConfig:
    return ReceiptConfig(shop=shop, store=store_config)


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def sample_receipt(fixed_now: datetime) -> Receipt:
    return Receipt(
        receipt_number="PFX-2024-0001",
        customer_name="Asha Rao",
        phone="98765-43210",
        address="4th Cross, Indiranagar",
        email="asha@example.com",
        device_category=DeviceCategory.MOBILE,
        imei="356938035643809",
        serial_number="F17XK2ABCD",
        issue="Display cracked after a fall; touch unresponsive in the lower half",
        condition="Scratches on back panel",
        total_amount=Decimal("1500"),
        amount_in_words="one thousand five hundred Rupees Only.",
        created_at=fixed_now,
        created_by="counter-1",
    )
