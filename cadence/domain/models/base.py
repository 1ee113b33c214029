"""
Shared model types
"""
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator

from cadence.utils.time_utils import ensure_utc


# Datetime normalized to aware UTC on validation
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]
