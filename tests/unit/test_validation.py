from datetime import date

import pytest

from rogainizer.errors import MembershipError, ValidationError
from rogainizer.validation import (
    normalize_score,
    parse_date,
    parse_duration,
    parse_id,
    parse_year,
    require_fields,
    validate_selections,
)


@pytest.mark.parametrize("value, expected", [(7, 7), ("7", 7), ("7.0", 7), (" 12 ", 12), (3.0, 3)])
def test_parse_id_accepts_positive_integers(value, expected):
    assert parse_id(value, "event") == expected


@pytest.mark.parametrize("value", [0, -1, "0", "abc", "", None, "1.5", True, float("nan"), "inf"])
def test_parse_id_rejects_invalid(value):
    with pytest.raises(ValidationError) as err:
        parse_id(value, "team")
    assert err.value.message == "invalid team id"


@pytest.mark.parametrize("value, expected", [(0, 0.0), (12.5, 12.5), ("40", 40.0)])
def test_normalize_score_valid(value, expected):
    assert normalize_score(value) == expected


@pytest.mark.parametrize("value", [-1, "-0.5", "abc", "", None, True, float("inf"), float("nan"), [1]])
def test_normalize_score_invalid(value):
    assert normalize_score(value) is None


def test_parse_year():
    assert parse_year("2024") == 2024
    for bad in (0, -2024, "20.5", None, "year"):
        with pytest.raises(ValidationError):
            parse_year(bad)


def test_parse_duration():
    assert parse_duration("6") == 6.0
    assert parse_duration(0) == 0.0
    for bad in (None, "inf", -1, "six"):
        with pytest.raises(ValidationError):
            parse_duration(bad)


def test_parse_date_ignores_time_component():
    assert parse_date("2024-05-01") == date(2024, 5, 1)
    assert parse_date("2024-05-01T00:00:00.000Z") == date(2024, 5, 1)
    with pytest.raises(ValidationError):
        parse_date("01/05/2024")


def test_require_fields_treats_blank_as_missing():
    require_fields({"name": "x", "date": "2024-01-01"}, ("name", "date"), "missing")
    with pytest.raises(ValidationError) as err:
        require_fields({"name": "  ", "date": "2024-01-01"}, ("name", "date"), "missing")
    assert err.value.message == "missing"


class TestValidateSelections:
    def test_member_passes(self):
        assert validate_selections(["Long", "Short"], ["Open"], "Short", "Open") is None

    def test_course_not_offered_lists_allowed(self):
        err = validate_selections(["Long", "Short"], ["Open"], "Medium", "Open")
        assert isinstance(err, MembershipError)
        assert isinstance(err, ValidationError)
        assert err.message == "course must be one of the event courses: Long, Short"

    def test_course_checked_before_category(self):
        err = validate_selections(["Long"], ["Open"], "Medium", "Vets")
        assert err.message.startswith("course must be one of")

    def test_category_not_offered(self):
        err = validate_selections(["Long"], ["Open", "Vets"], "Long", "Juniors")
        assert err.message == "category must be one of the event categories: Open, Vets"

    def test_empty_sets_report_none_configured(self):
        err = validate_selections([], [], "Long", "Open")
        assert err.message == "course must be one of the event courses: (none configured)"
        err = validate_selections(["Long"], [], "Long", "Open")
        assert err.message == "category must be one of the event categories: (none configured)"


def test_oversized_integers_are_not_numbers():
    huge = 10 ** 400
    assert normalize_score(huge) is None
    assert normalize_score(str(huge)) is None
    with pytest.raises(ValidationError):
        parse_year(huge)
    with pytest.raises(ValidationError):
        parse_duration(huge)
    with pytest.raises(ValidationError):
        parse_id(huge, "event")
