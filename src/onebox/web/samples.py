"""Built-in sample mailbox served while the store is still empty."""

from __future__ import annotations

from datetime import datetime, timedelta

from ..core.datetime_utils import utc_now
from ..core.models import Category, Email
from ..storage import InMemoryEmailStore

SAMPLE_ID_PREFIX = "demo-"

_SAMPLES: tuple[tuple[str, str, str, Category], ...] = (
    (
        "recruiter@techcorp.com",
        "Interview Invitation - Senior Developer Position",
        "Hi, Your resume has been shortlisted for the Senior Developer position. "
        "When would be a good time for you to attend a technical interview?",
        Category.INTERESTED,
    ),
    (
        "hr@startup.io",
        "Meeting Scheduled for Tomorrow",
        "This is to confirm our meeting scheduled for tomorrow at 2 PM. "
        "Looking forward to discussing the opportunity with you.",
        Category.MEETING_BOOKED,
    ),
    (
        "noreply@company.com",
        "Thank you for your application",
        "Thank you for your interest in our company. Unfortunately, we have "
        "decided to move forward with other candidates at this time.",
        Category.NOT_INTERESTED,
    ),
    (
        "marketing@deals.com",
        "AMAZING OFFER - 50% OFF TODAY ONLY!!!",
        "Click here now to claim your exclusive discount! Limited time offer! "
        "Buy now and save big!",
        Category.SPAM,
    ),
    (
        "john.doe@company.com",
        "Out of Office: Re: Project Discussion",
        "I am currently out of office and will return on Monday. I will respond "
        "to your email when I return.",
        Category.OUT_OF_OFFICE,
    ),
    (
        "cto@innovate.tech",
        "Interested in Your Profile",
        "We came across your profile and are impressed with your experience. "
        "Would you be interested in discussing a potential opportunity with our "
        "team?",
        Category.INTERESTED,
    ),
    (
        "talent@bigtech.com",
        "Follow-up on Your Application",
        "Thank you for applying to our Software Engineer position. We would like "
        "to schedule a call to discuss your background and the role in more "
        "detail.",
        Category.INTERESTED,
    ),
    (
        "calendar@company.com",
        "Meeting Confirmation: Technical Interview",
        "Your interview has been confirmed for Friday at 10:00 AM. Please join "
        "via the link provided.",
        Category.MEETING_BOOKED,
    ),
)


def sample_emails(now: datetime | None = None) -> list[Email]:
    """Return the sample emails, one hour apart and alternating accounts."""
    anchor = now or utc_now()
    return [
        Email(
            id=f"{SAMPLE_ID_PREFIX}{index}",
            account_id="account1" if index % 2 == 0 else "account2",
            message_id=f"demo-{index}@example.com",
            sender=sender,
            to=("your-email@example.com",),
            subject=subject,
            body=body,
            date=anchor - timedelta(hours=index),
            folder="INBOX",
            category=category,
        )
        for index, (sender, subject, body, category) in enumerate(_SAMPLES)
    ]


def sample_store(now: datetime | None = None) -> InMemoryEmailStore:
    return InMemoryEmailStore(sample_emails(now))


def is_sample_id(email_id: str) -> bool:
    return email_id.startswith(SAMPLE_ID_PREFIX)


__all__ = ["SAMPLE_ID_PREFIX", "is_sample_id", "sample_emails", "sample_store"]
