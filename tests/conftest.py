import os
import tempfile
from datetime import datetime, timezone
from unittest.mock import AsyncMock

# Settings are read at import time; keep logs and the default database out of the repo.
_TEST_DIR = tempfile.mkdtemp(prefix="lead-crm-tests-")
os.environ.setdefault("LOG_FILE", os.path.join(_TEST_DIR, "crm.log"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_TEST_DIR, 'crm.db')}")
os.environ.setdefault("ENABLE_BACKGROUND_JOBS", "false")

import pytest

from models import DraftStatus, EmailDirection, EmailRecord, Lead, PipelineStatus, Tier
from repositories import (
    EmailsRepository, LeadsRepository, LogsRepository, Repositories, create_repositories
)


def make_lead(**overrides) -> Lead:
    fields = dict(
        id="lead-1",
        full_name="Ada Obi",
        email="ada@example.com",
        phone="+2348000000000",
        budget=150_000_000,
        form_score=80.0,
        interaction_score=0.0,
        total_score=48.0,
        tier=Tier.COLD,
        pipeline_status=PipelineStatus.CONTACTED,
        thread_id="thread-abc",
        last_email_sent_at=datetime(2026, 3, 1, 6, 0, tzinfo=timezone.utc),
        created_at=datetime(2026, 3, 1, 5, 0, tzinfo=timezone.utc),
        updated_at=datetime(2026, 3, 1, 6, 0, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return Lead(**fields)


def make_draft(**overrides) -> EmailRecord:
    fields = dict(
        id="draft-1",
        lead_id="lead-1",
        gmail_message_id=None,
        thread_id="thread-abc",
        direction=EmailDirection.DRAFT,
        subject="Re: Viewing",
        body="Draft body",
        draft_status=DraftStatus.PENDING_APPROVAL,
        sent_at=None,
        created_at=datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc),
        updated_at=datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return EmailRecord(**fields)


@pytest.fixture
def repositories() -> Repositories:
    """Repositories whose every method is an AsyncMock."""
    leads = AsyncMock(spec=LeadsRepository)
    emails = AsyncMock(spec=EmailsRepository)
    logs = AsyncMock(spec=LogsRepository)
    leads.find_by_email.return_value = None
    emails.find_by_message_id.return_value = None
    return Repositories(leads=leads, emails=emails, logs=logs)


@pytest.fixture
def sql_repositories(tmp_path) -> Repositories:
    return create_repositories(f"sqlite:///{tmp_path / 'test.db'}")


@pytest.fixture
def fixed_now():
    return datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
