"""
External collaborators: payment provider and file storage.

Services receive these as constructor arguments so tests can pass doubles.
"""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

import stripe

from coursehub.config import Settings
from coursehub.exceptions import BadRequest, UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentResult:
    status: str
    transaction_id: str
    course_id: int
    student_id: int

    @property
    def is_paid(self) -> bool:
        return self.status == "paid"


class StripePayments:
    """Stripe Checkout: creates sessions and reads back their outcome."""

    def __init__(self, settings: Settings):
        self.api_key = settings.stripe_secret_key
        self.domain = settings.frontend_domain.rstrip("/")
        self.currency = settings.checkout_currency

    def create_checkout(self, course, student) -> str:
        try:
            checkout_session = stripe.checkout.Session.create(
                api_key=self.api_key,
                payment_method_types=["card"],
                line_items=[{
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {"name": course.title, "description": course.description or course.title},
                        "unit_amount": int(round(course.price * 100)),
                    },
                    "quantity": 1,
                }],
                mode="payment",
                success_url=f"{self.domain}/purchase-success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{self.domain}/courses/{course.id}",
                metadata={"course_id": str(course.id), "student_id": str(student.id)},
            )
        except stripe.StripeError as e:
            logger.warning("Stripe checkout creation failed for course %s: %s", course.id, e)
            raise UpstreamFailure("Payment provider is unavailable") from e
        return checkout_session.url

    def retrieve(self, reference: str) -> PaymentResult:
        try:
            session = stripe.checkout.Session.retrieve(reference, api_key=self.api_key)
        except stripe.InvalidRequestError as e:
            raise BadRequest("Unknown transaction reference") from e
        except stripe.StripeError as e:
            logger.warning("Stripe session lookup failed for %s: %s", reference, e)
            raise UpstreamFailure("Payment provider is unavailable") from e

        metadata = session.metadata or {}
        try:
            course_id = int(metadata["course_id"])
            student_id = int(metadata["student_id"])
        except (KeyError, TypeError, ValueError):
            raise BadRequest("Invalid course or student ID")

        return PaymentResult(
            status=session.payment_status,
            transaction_id=session.payment_intent,
            course_id=course_id,
            student_id=student_id,
        )


class LocalFileStore:
    """Keeps uploads on local disk; files are served from ``media_url``."""

    def __init__(self, settings: Settings):
        self.root = Path(settings.media_root)
        self.url_prefix = settings.media_url.rstrip("/")

    def put(self, filename: str, data: bytes) -> str:
        name = f"{uuid.uuid4().hex}_{Path(filename).name}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / name).write_bytes(data)
        except OSError as e:
            logger.error("Could not store upload %s: %s", filename, e)
            raise UpstreamFailure("File storage is unavailable") from e
        return f"{self.url_prefix}/{name}"
