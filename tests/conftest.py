"""
Shared fixtures for cadence tests
"""
from datetime import datetime

import pytest
import pytz

from cadence.core.config import ConfigManager
from cadence.domain.models.cadence_config import load_cadence_config
from cadence.domain.models.lead import Active, CadencePhase, Lead
from cadence.domain.models.phone import Phone, PhoneStatus


# Monday afternoon, well after the 9 AM business hour
NOW = datetime(2024, 3, 4, 15, 0, tzinfo=pytz.UTC)


@pytest.fixture
def now():
    return NOW


@pytest.fixture(scope="session")
def config():
    return load_cadence_config(ConfigManager(env="test"))


@pytest.fixture
def make_phone():
    def _make(phone_id="p1", type="MOBILE", status=PhoneStatus.VALID, **fields):
        return Phone(
            id=phone_id,
            number=f"+1555000{phone_id[-1]:0>4}",
            type=type,
            phone_status=status,
            **fields,
        )
    return _make


@pytest.fixture
def make_lead(make_phone):
    def _make(lead_id="lead-1", phones=None, **fields):
        values = {
            "id": lead_id,
            "created_at": datetime(2024, 2, 1, tzinfo=pytz.UTC),
            "cadence_phase": CadencePhase.NEW,
            "state": Active(),
            "enrollment_count": 1,
        }
        values.update(fields)
        return Lead(phones=[make_phone()] if phones is None else phones, **values)
    return _make
