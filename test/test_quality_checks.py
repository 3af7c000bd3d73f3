"""Unit tests for the quality checks."""
from datetime import date

import pandas as pd

from hr_etl.common.quality_checks import (
    QCReport,
    TEXT_FOREIGN_KEYS,
    check_age_consistency,
    check_min_age,
    check_natural_key,
    check_not_after,
    check_referential_integrity,
    check_round_trip,
    check_row_count,
    check_sentinel_bound,
    run_quality_checks,
)

SENTINEL = date(1900, 1, 1)


class TestBasicChecks:
    """Tests for row count and natural key checks."""

    def test_row_count(self):
        assert check_row_count(pd.DataFrame({"a": [1]}), "t").passed
        assert not check_row_count(pd.DataFrame({"a": []}), "t").passed

    def test_same_child_under_two_parents(self):
        """Same child under two parents is not a repeated pair."""
        df = pd.DataFrame({"id": [1, 4], "department_id": [1, 3], "jobtitle": ["BA", "BA"]})
        assert check_natural_key(df, "jobtitles", ["department_id", "jobtitle"]).passed
        assert not check_natural_key(df, "jobtitles", ["jobtitle"]).passed

    def test_incomplete_key(self):
        df = pd.DataFrame({"id": [1, 2], "name": ["x", None]})
        result = check_natural_key(df, "genders", ["name"])
        assert not result.passed
        assert result.details["incomplete"] == 1

    def test_repeated_id(self):
        df = pd.DataFrame({"id": [1, 1], "name": ["x", "y"]})
        assert check_natural_key(df, "genders", ["name"]).details["duplicate_ids"] == 1

    def test_missing_key_column(self):
        df = pd.DataFrame({"id": [1]})
        assert not check_natural_key(df, "cities", ["state_id", "name"]).passed


class TestReferentialIntegrity:
    """Tests for check_referential_integrity."""

    def test_all_keys_resolve(self):
        child = pd.DataFrame({"city_id": [1, 2, None]})
        parent = pd.DataFrame({"id": [1, 2]})
        assert check_referential_integrity(child, parent, "employees", "cities", "city_id", "id").passed

    def test_orphan(self):
        child = pd.DataFrame({"city_id": [1, 7]})
        parent = pd.DataFrame({"id": [1, 2]})
        result = check_referential_integrity(child, parent, "employees", "cities", "city_id", "id")
        assert not result.passed
        assert result.details["sample_orphans"] == [7]

    def test_key_matching_several_rows(self):
        """A key that resolves to more than one parent row fails."""
        child = pd.DataFrame({"city_id": [1]})
        parent = pd.DataFrame({"id": [1, 1]})
        result = check_referential_integrity(child, parent, "employees", "cities", "city_id", "id")
        assert not result.passed
        assert result.details["ambiguous_count"] == 1


class TestCleanedDateChecks:
    """Tests for the cleaned-date rules."""

    def test_hire_date_not_after_as_of(self):
        df = pd.DataFrame({"hire_date": [date(2020, 1, 1), date(2026, 1, 1), None]})
        result = check_not_after(df, "employees", "hire_date", date(2025, 1, 1))
        assert not result.passed
        assert result.details["violations"] == 1

    def test_min_age(self):
        df = pd.DataFrame({"birthdate": [date(1980, 1, 1), None]})
        assert check_min_age(df, "employees", date(2025, 1, 1)).passed
        df = pd.DataFrame({"birthdate": [date(2008, 1, 1)]})
        assert not check_min_age(df, "employees", date(2025, 1, 1)).passed

    def test_min_age_boundary(self):
        """Exactly 18 years before as_of is old enough, one day later is not."""
        df = pd.DataFrame({"birthdate": [date(2007, 1, 1)]})
        assert check_min_age(df, "employees", date(2025, 1, 1)).passed
        df = pd.DataFrame({"birthdate": [date(2007, 1, 2)]})
        assert not check_min_age(df, "employees", date(2025, 1, 1)).passed

    def test_age_consistency(self):
        df = pd.DataFrame({
            "birthdate": [date(1955, 2, 5), None],
            "age": [69, None],
        })
        assert check_age_consistency(df, "employees", date(2025, 1, 1)).passed

    def test_age_wrong_value(self):
        df = pd.DataFrame({"birthdate": [date(1955, 2, 5)], "age": [70]})
        result = check_age_consistency(df, "employees", date(2025, 1, 1))
        assert not result.passed
        assert result.details["wrong_age"] == 1

    def test_sentinel_bound(self):
        df = pd.DataFrame({
            "hire_date": [date(2015, 1, 1), date(2020, 2, 28)],
            "termdate": [SENTINEL, date(2019, 1, 1)],
        })
        result = check_sentinel_bound(df, "employees", "termdate", "hire_date", SENTINEL)
        assert result.passed
        assert result.details["sentinel_rows"] == 1

    def test_sentinel_bound_violation(self):
        df = pd.DataFrame({
            "hire_date": [date(2015, 1, 1), date(2020, 2, 28)],
            "termdate": [date(2020, 2, 28), None],
        })
        assert not check_sentinel_bound(df, "employees", "termdate", "hire_date", SENTINEL).passed


class TestRoundTrip:
    """Tests for check_round_trip."""

    def test_equal_with_nulls(self):
        before = pd.DataFrame({"id": ["a", "b"], "race": ["White", None]})
        after = pd.DataFrame({"id": ["b", "a"], "race": [None, "White"]})
        assert check_round_trip(before, after, "employees", "id", ["race"]).passed

    def test_mismatch(self):
        before = pd.DataFrame({"id": ["a"], "jobtitle": ["Business Analyst"]})
        after = pd.DataFrame({"id": ["a"], "jobtitle": ["Product Manager"]})
        result = check_round_trip(before, after, "employees", "id", ["jobtitle"])
        assert not result.passed
        assert result.details["mismatches"] == {"jobtitle": 1}

    def test_null_foreign_key_not_compared(self):
        """Parent text on a row without a job title has no key to come back through."""
        before = pd.DataFrame({
            "id": ["a", "b"],
            "department": ["Engineering", "Engineering"],
            "jobtitle": [None, "Business Analyst"],
        })
        after = pd.DataFrame({
            "id": ["a", "b"],
            "department": [None, "Engineering"],
            "jobtitle": [None, "Business Analyst"],
            "jobtitle_id": [None, 1],
        })
        columns = ["department", "jobtitle"]
        result = check_round_trip(before, after, "employees", "id", columns, TEXT_FOREIGN_KEYS)
        assert result.passed
        assert result.details["unlinked"] == {"department": 1}
        assert not check_round_trip(before, after, "employees", "id", columns).passed

    def test_linked_row_still_compared(self):
        before = pd.DataFrame({"id": ["a"], "department": ["Engineering"], "jobtitle": ["BA"]})
        after = pd.DataFrame({"id": ["a"], "department": ["Sales"], "jobtitle": ["BA"], "jobtitle_id": [3]})
        result = check_round_trip(before, after, "employees", "id", ["department", "jobtitle"], TEXT_FOREIGN_KEYS)
        assert not result.passed
        assert result.details["mismatches"] == {"department": 1}


class TestRunQualityChecks:
    """Tests for run_quality_checks on a hand-built schema."""

    def _frames(self):
        return {
            "employees": pd.DataFrame({
                "id": ["a", "b"],
                "birthdate": [date(1980, 1, 1), None],
                "hire_date": [date(2010, 1, 1), date(2020, 1, 1)],
                "termdate": [SENTINEL, None],
                "age": [45, None],
                "jobtitle_id": [1, 2],
            }),
            "departments": pd.DataFrame({"id": [1, 2], "name": ["Eng", "PM"]}),
            "jobtitles": pd.DataFrame({
                "id": [1, 2],
                "department_id": [1, 2],
                "jobtitle": ["BA", "BA"],
            }),
        }

    def test_valid_schema_passes(self):
        report = run_quality_checks(self._frames(), date(2025, 6, 1), SENTINEL)
        assert isinstance(report, QCReport)
        assert report.passed, report.summary()

    def test_orphan_fails(self):
        frames = self._frames()
        frames["jobtitles"].loc[1, "department_id"] = 9
        report = run_quality_checks(frames, date(2025, 6, 1), SENTINEL)
        assert not report.passed
        failed = [r.check_name for r in report.failures]
        assert failed == ["ref_integrity_department_id"]
