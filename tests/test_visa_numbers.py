from __future__ import annotations

from datetime import datetime, timezone
from itertools import chain, repeat

import pytest
from sqlalchemy import select

from actions.candidate_repo import candidate_create
from db import SessionLocal
from models import Candidate
from services.visa_numbers import VISA_NUMBER_RE, allocate_visa_number, generate_visa_number
from tests.helpers import caller, candidate_payload, seed_tenancy
from utils import ApiError


def _seed_pending(cfg, app_no: str, passport: str) -> str:
    with SessionLocal() as db:
        out = candidate_create(
            candidate_payload(applicationNumber=app_no, passportNumber=passport), caller(db, "ADM-A"), db, cfg
        )
        db.commit()
    return out["candidateId"]


def test_generated_numbers_carry_prefix_and_year():
    value = generate_visa_number(datetime(2031, 3, 1, tzinfo=timezone.utc), prefix="VN")
    assert value.startswith("VN2031")
    assert len(value) == len("VN") + 4 + 8
    assert VISA_NUMBER_RE.match(value)


def test_collision_on_lookup_retries_with_a_fresh_value(cfg):
    seed_tenancy()
    first = _seed_pending(cfg, "APP-1", "P1")
    second = _seed_pending(cfg, "APP-2", "P2")

    with SessionLocal() as db:
        assert allocate_visa_number(db, first, cfg=cfg, generate=lambda: "VN202600000001") == "VN202600000001"
        db.commit()

    values = iter(["VN202600000001", "VN202600000001", "VN202600000002"])
    with SessionLocal() as db:
        got = allocate_visa_number(db, second, cfg=cfg, generate=lambda: next(values))
        db.commit()
    assert got == "VN202600000002"


def test_exhaustion_is_retryable_and_leaves_record_untouched(cfg):
    seed_tenancy()
    first = _seed_pending(cfg, "APP-1", "P1")
    second = _seed_pending(cfg, "APP-2", "P2")

    with SessionLocal() as db:
        allocate_visa_number(db, first, cfg=cfg, generate=lambda: "VN202600000001")
        db.commit()

    calls = []

    def always_taken():
        calls.append(1)
        return "VN202600000001"

    with SessionLocal() as db:
        with pytest.raises(ApiError) as exc:
            allocate_visa_number(db, second, cfg=cfg, generate=always_taken)
        db.rollback()

    assert exc.value.code == "ALLOCATION_EXHAUSTED"
    assert exc.value.details == {"retryable": True}
    assert len(calls) == cfg.VISA_ALLOCATION_MAX_ATTEMPTS
    with SessionLocal() as db:
        assert db.execute(select(Candidate.visaNumber).where(Candidate.candidateId == second)).scalar_one() is None


def test_second_allocation_returns_the_existing_number(cfg):
    seed_tenancy()
    cid = _seed_pending(cfg, "APP-1", "P1")
    fresh = chain(["VN202600000007"], repeat("VN202600000008"))

    with SessionLocal() as db:
        first = allocate_visa_number(db, cid, cfg=cfg, generate=lambda: next(fresh))
        again = allocate_visa_number(db, cid, cfg=cfg, generate=lambda: next(fresh))
        db.commit()
    assert first == again == "VN202600000007"


def test_unknown_candidate_is_not_found(cfg):
    with SessionLocal() as db:
        with pytest.raises(ApiError) as exc:
            allocate_visa_number(db, "CAN-missing", cfg=cfg)
    assert exc.value.code == "NOT_FOUND"
