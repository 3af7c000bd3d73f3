"""Tests for the cleaning stage against a SQLite database."""
from datetime import date

import pandas as pd
import pytest

from db.db_utils import column_names, read_table
from hr_etl.cleaner import (
    TERMDATE_SENTINEL,
    refresh_age,
    run_cleaner,
)
from hr_etl.cleaner.transformer import is_date_column
from hr_etl.cleaner.validator import validate_cleaned_employees
from hr_etl.common.exceptions import DateFormatError, ETLError, MigrationPreconditionError
from hr_etl.common.migrations import applied_migrations
from hr_etl.raw import load_raw_employees


def _employees(engine):
    with engine.connect() as conn:
        return read_table(conn, "employees").set_index("id")


class TestRunCleaner:
    """End-to-end cleaning of the sample export."""

    def test_date_columns_retyped(self, cleaned_engine):
        """birthdate, hire_date and termdate should all be DATE columns."""
        with cleaned_engine.connect() as conn:
            for column in ("birthdate", "hire_date", "termdate"):
                assert is_date_column(conn, column)

    def test_mixed_separators_parsed(self, cleaned_engine):
        df = _employees(cleaned_engine)
        assert df.loc["00-001", "birthdate"] == date(1955, 2, 5)
        assert df.loc["00-002", "birthdate"] == date(1980, 11, 23)
        assert df.loc["00-002", "hire_date"] == date(2012, 6, 20)

    def test_unparseable_birthdate_is_null(self, cleaned_engine):
        """A value with neither separator becomes NULL, the row is kept."""
        df = _employees(cleaned_engine)
        assert pd.isna(df.loc["00-004", "birthdate"])
        assert len(df) == 6

    def test_blank_termdate_is_null(self, cleaned_engine):
        df = _employees(cleaned_engine)
        assert pd.isna(df.loc["00-001", "termdate"])
        assert pd.isna(df.loc["00-004", "termdate"])

    def test_termdate_keeps_date_component(self, cleaned_engine):
        df = _employees(cleaned_engine)
        assert df.loc["00-002", "termdate"] == date(2018, 3, 15)

    def test_underage_birthdate_nulled(self, cleaned_engine):
        """Birthdates less than 18 years before the processing date become NULL."""
        df = _employees(cleaned_engine)
        assert pd.isna(df.loc["00-003", "birthdate"])
        assert pd.isna(df.loc["00-003", "age"])

    def test_late_termdates_get_sentinel(self, cleaned_engine):
        """Termdates on or after the latest hire date are replaced by the sentinel."""
        df = _employees(cleaned_engine)
        assert df.loc["00-003", "termdate"] == TERMDATE_SENTINEL
        assert df.loc["00-005", "termdate"] == TERMDATE_SENTINEL
        assert df.loc["00-006", "termdate"] == date(2019, 11, 2)

    def test_age_derived(self, cleaned_engine):
        df = _employees(cleaned_engine)
        ages = df["age"].to_dict()
        assert ages["00-001"] == 69
        assert ages["00-002"] == 44
        assert ages["00-005"] == 34
        assert ages["00-006"] == 49
        assert pd.isna(ages["00-003"])
        assert pd.isna(ages["00-004"])

    def test_returns_stats_and_validation(self, loaded_engine, as_of):
        result = run_cleaner(loaded_engine, as_of=as_of)
        stats = result["stats"]
        assert stats["birthdate"]["separators"] == ["-", "/"]
        assert stats["birthdate"]["order"] == "mm-dd-yyyy"
        assert stats["birthdate"]["unparsed_to_null"] == 1
        assert stats["termdate"]["blank_to_null"] == 2
        assert stats["birthdate_outliers"] == 1
        assert stats["termdate_outliers"] == 2
        assert stats["max_hire_date"] == date(2020, 2, 28)
        assert [o.status for o in result["migrations"]] == ["applied"] * 6
        assert result["validation"].passed

    def test_rerun_is_noop(self, cleaned_engine, as_of):
        """A second run skips every committed unit and changes nothing."""
        before = _employees(cleaned_engine)
        result = run_cleaner(cleaned_engine, as_of=as_of)
        assert all(o.status == "skipped" for o in result["migrations"])
        pd.testing.assert_frame_equal(before, _employees(cleaned_engine))

    def test_ledger_records_units(self, cleaned_engine):
        assert applied_migrations(cleaned_engine) >= {
            "clean_birthdate", "clean_hire_date", "clean_termdate",
            "add_age", "correct_birthdate_outliers", "correct_termdate_outliers",
        }

    def test_iso_birthdate_nulled_others_kept(self, engine, raw_employees, as_of):
        """One value in another layout is nulled; the column is still cleaned."""
        raw_employees.loc[3, "birthdate"] = "1985-04-12"
        load_raw_employees(raw_employees, engine)

        result = run_cleaner(engine, as_of=as_of)
        df = _employees(engine)
        assert pd.isna(df.loc["00-004", "birthdate"])
        assert df.loc["00-002", "birthdate"] == date(1980, 11, 23)
        assert result["stats"]["birthdate"]["order"] == "mm-dd-yyyy"
        assert result["stats"]["birthdate"]["unparsed_to_null"] == 1

    def test_day_typo_nulled_others_kept(self, engine, raw_employees, as_of):
        raw_employees.loc[3, "birthdate"] = "04/45/1985"
        load_raw_employees(raw_employees, engine)

        run_cleaner(engine, as_of=as_of)
        df = _employees(engine)
        assert pd.isna(df.loc["00-004", "birthdate"])
        assert df.loc["00-001", "birthdate"] == date(1955, 2, 5)

    def test_birthdate_exactly_min_age_kept(self, engine, raw_employees, as_of):
        """A birthdate exactly 18 years before the processing date is kept."""
        raw_employees.loc[3, "birthdate"] = "01/01/2007"
        load_raw_employees(raw_employees, engine)

        run_cleaner(engine, as_of=as_of)
        df = _employees(engine)
        assert df.loc["00-004", "birthdate"] == date(2007, 1, 1)
        assert df.loc["00-004", "age"] == 18

    def test_birthdate_one_day_short_of_min_age_nulled(self, engine, raw_employees, as_of):
        raw_employees.loc[3, "birthdate"] = "01/02/2007"
        load_raw_employees(raw_employees, engine)

        run_cleaner(engine, as_of=as_of)
        df = _employees(engine)
        assert pd.isna(df.loc["00-004", "birthdate"])
        assert pd.isna(df.loc["00-004", "age"])


class TestCleanerFailures:
    """A failing unit leaves the table as it was."""

    def test_column_without_year_rolls_back(self, engine, raw_employees, as_of):
        raw_employees["birthdate"] = ["01/02/03"] * len(raw_employees)
        load_raw_employees(raw_employees, engine)

        with pytest.raises(DateFormatError):
            run_cleaner(engine, as_of=as_of)

        with engine.connect() as conn:
            assert not is_date_column(conn, "birthdate")
            assert "age" not in column_names(conn, "employees")
        assert "clean_birthdate" not in applied_migrations(engine)

    def test_missing_column_fails(self, engine, raw_employees, as_of):
        load_raw_employees(raw_employees, engine)
        with engine.begin() as conn:
            conn.exec_driver_sql("ALTER TABLE employees DROP COLUMN termdate")

        with pytest.raises(ETLError):
            run_cleaner(engine, as_of=as_of)
        # the units before the failing one stay committed
        assert {"clean_birthdate", "clean_hire_date"} <= applied_migrations(engine)


class TestRefreshAge:
    """Tests for refresh_age."""

    def test_recomputes_for_new_date(self, cleaned_engine):
        result = refresh_age(cleaned_engine, as_of=date(2026, 1, 1))
        df = _employees(cleaned_engine)
        assert df.loc["00-001", "age"] == 70
        assert df.loc["00-005", "age"] == 35
        assert result["aged_rows"] == 4
        assert result["birthdate_outliers"] == 0

    def test_runs_every_time(self, cleaned_engine, as_of):
        refresh_age(cleaned_engine, as_of=date(2030, 1, 1))
        refresh_age(cleaned_engine, as_of=as_of)
        assert _employees(cleaned_engine).loc["00-001", "age"] == 69

    def test_requires_age_column(self, loaded_engine, as_of):
        with pytest.raises(MigrationPreconditionError):
            refresh_age(loaded_engine, as_of=as_of)


class TestValidateCleanedEmployees:
    """Tests for validate_cleaned_employees."""

    def _frame(self, **overrides):
        data = {
            "id": ["a", "b"],
            "birthdate": [date(1980, 1, 1), None],
            "hire_date": [date(2010, 1, 1), date(2020, 1, 1)],
            "termdate": [date(2015, 1, 1), None],
            "age": [45, None],
        }
        data.update(overrides)
        return pd.DataFrame(data)

    def test_clean_frame_passes(self):
        report = validate_cleaned_employees(self._frame(), date(2025, 6, 1))
        assert report.passed
        assert report.warning_count == 0

    def test_underage_fails(self):
        frame = self._frame(birthdate=[date(2015, 1, 1), None], age=[10, None])
        report = validate_cleaned_employees(frame, date(2025, 6, 1))
        assert not report.passed

    def test_exactly_min_age_passes(self):
        frame = self._frame(birthdate=[date(2007, 6, 1), None], age=[18, None])
        report = validate_cleaned_employees(frame, date(2025, 6, 1))
        assert report.passed

    def test_age_null_mismatch_fails(self):
        frame = self._frame(age=[45, 30])
        report = validate_cleaned_employees(frame, date(2025, 6, 1))
        assert not report.passed

    def test_late_termdate_fails(self):
        frame = self._frame(termdate=[date(2021, 1, 1), None])
        report = validate_cleaned_employees(frame, date(2025, 6, 1))
        assert not report.passed

    def test_wrong_age_is_warning(self):
        frame = self._frame(age=[40, None])
        report = validate_cleaned_employees(frame, date(2025, 6, 1))
        assert report.passed
        assert report.warning_count == 1
