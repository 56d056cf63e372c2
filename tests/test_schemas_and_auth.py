from datetime import timedelta

import pytest
from pydantic import ValidationError

from homeview.core.security import (
    create_access_token,
    decode_access_token,
    user_from_claims,
)
from homeview.schemas.viewing import ViewingCreate
from tests.conftest import booking


@pytest.mark.parametrize("value", ["00:00", "09:30", "23:59"])
def test_valid_viewing_times(value):
    assert booking(viewing_time=value).viewing_time == value


@pytest.mark.parametrize("value", ["24:00", "9:30", "12:60", "noon", ""])
def test_invalid_viewing_times(value):
    with pytest.raises(ValidationError):
        booking(viewing_time=value)


def test_blank_visitor_name_is_rejected():
    with pytest.raises(ValidationError):
        booking(visitor_name="   ")


def test_duration_defaults_to_30_minutes():
    assert booking().duration == 30


def test_bad_email_is_rejected():
    with pytest.raises(ValidationError):
        ViewingCreate(
            property_id=1,
            visitor_name="Jane",
            visitor_email="not-an-email",
            viewing_date="2026-03-01T10:00:00",
            viewing_time="10:00",
        )


def test_token_round_trip_reads_role():
    token = create_access_token({"sub": "admin-1", "role": "admin"})

    user = user_from_claims(decode_access_token(token))

    assert user.id == "admin-1"
    assert user.is_admin


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-5))

    assert decode_access_token(token) is None


def test_claims_without_subject_have_no_user():
    assert user_from_claims({"role": "admin"}) is None
