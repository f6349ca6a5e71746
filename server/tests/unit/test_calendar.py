"""Unit tests for stay ranges and business dates."""

from datetime import date, datetime, timezone

from roomledger.core.calendar import StayRange, audit_target_date, business_date, iter_nights


def test_stay_range_nights():
    """Test a stay covers arrival but not departure."""
    stay = StayRange(date(2024, 6, 30), date(2024, 7, 2))

    assert stay.night_count == 2
    assert stay.nights() == [date(2024, 6, 30), date(2024, 7, 1)]
    assert stay.covers(date(2024, 6, 30))
    assert not stay.covers(date(2024, 7, 2))
    assert str(stay) == "2024-06-30..2024-07-02"


def test_iter_nights_empty_when_start_not_before_end():
    """Test an empty range yields nothing."""
    assert list(iter_nights(date(2024, 6, 5), date(2024, 6, 5))) == []


def test_business_date_before_cutover():
    """Test the previous day stays open until the cutover hour."""
    moment = datetime(2024, 6, 5, 2, 59, tzinfo=timezone.utc)

    assert business_date(moment, cutover_hour=3) == date(2024, 6, 4)
    assert audit_target_date(moment, cutover_hour=3) == date(2024, 6, 3)


def test_business_date_after_cutover():
    """Test the business date rolls over at the cutover hour."""
    moment = datetime(2024, 6, 5, 3, 0, tzinfo=timezone.utc)

    assert business_date(moment, cutover_hour=3) == date(2024, 6, 5)
    assert audit_target_date(moment, cutover_hour=3) == date(2024, 6, 4)


def test_midnight_cutover():
    """Test a zero cutover hour follows the calendar."""
    moment = datetime(2024, 6, 5, 0, 0, tzinfo=timezone.utc)

    assert business_date(moment, cutover_hour=0) == date(2024, 6, 5)
