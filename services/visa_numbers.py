from __future__ import annotations

import logging
import re
import secrets
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from models import Candidate
from utils import ApiError, iso_utc_now


log = logging.getLogger("ledger")

VISA_SUFFIX_DIGITS = 8
VISA_NUMBER_RE = re.compile(r"^[A-Z]+\d{4}\d{8}$")


def generate_visa_number(now: Optional[datetime] = None, *, prefix: str = "VN") -> str:
    year = (now or datetime.now(timezone.utc)).year
    suffix = 10 ** (VISA_SUFFIX_DIGITS - 1) + secrets.randbelow(9 * 10 ** (VISA_SUFFIX_DIGITS - 1))
    return f"{prefix}{year}{suffix}"


def allocate_visa_number(db, candidate_id: str, *, cfg, generate: Optional[Callable[[], str]] = None) -> str:
    """Reserve a globally unique visa number on a candidate that has none.

    Check-then-reserve with bounded retries. The unique index on visaNumber is
    the real guard: a concurrent allocator that slips past the check fails the
    savepoint with IntegrityError and we retry with a fresh value.
    """
    gen = generate or (lambda: generate_visa_number(prefix=cfg.VISA_NUMBER_PREFIX))
    max_attempts = int(cfg.VISA_ALLOCATION_MAX_ATTEMPTS)

    for attempt in range(1, max_attempts + 1):
        value = str(gen() or "").strip().upper()
        if not value:
            continue

        taken = db.execute(select(Candidate.candidateId).where(Candidate.visaNumber == value)).first()
        if taken:
            log.info("visa_number_collision candidate=%s attempt=%s stage=check", candidate_id, attempt)
            continue

        try:
            with db.begin_nested():
                res = db.execute(
                    update(Candidate)
                    .where(Candidate.candidateId == candidate_id)
                    .where(Candidate.visaNumber.is_(None))
                    .values(visaNumber=value, visaIssuedAt=iso_utc_now())
                    .execution_options(synchronize_session=False)
                )
        except IntegrityError:
            log.info("visa_number_collision candidate=%s attempt=%s stage=reserve", candidate_id, attempt)
            continue

        if res.rowcount == 0:
            # Already allocated (immutable) or the record vanished.
            current = db.execute(select(Candidate.visaNumber).where(Candidate.candidateId == candidate_id)).scalar_one_or_none()
            if current:
                return current
            raise ApiError("NOT_FOUND", "Candidate not found")

        log.info("visa_number_allocated candidate=%s attempts=%s", candidate_id, attempt)
        return value

    log.error("visa_number_exhausted candidate=%s attempts=%s", candidate_id, max_attempts)
    raise ApiError(
        "ALLOCATION_EXHAUSTED",
        "Could not allocate a visa number. Please retry.",
        details={"retryable": True},
    )
