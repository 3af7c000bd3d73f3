"""Tests for loading the HR export into the raw employees table."""
import pytest

from db.db_utils import read_table, reflect_table
from hr_etl.common.exceptions import RawLoadError
from hr_etl.raw import REQUIRED_COLUMNS, load_raw_employees, read_employee_csv, run_raw_load


@pytest.fixture
def csv_file(tmp_path, raw_employees):
    path = tmp_path / "Human Resources.csv"
    raw_employees.to_csv(path, index=False, encoding="utf-8-sig")
    return path


class TestReadEmployeeCsv:
    """Tests for read_employee_csv."""

    def test_reads_every_column_as_text(self, csv_file):
        df = read_employee_csv(str(csv_file))
        assert len(df) == 6
        assert df.loc[0, "id"] == "00-001"
        assert df.loc[0, "birthdate"] == "02/05/1955"

    def test_blank_termdate_stays_empty_string(self, csv_file):
        """Blanks are left for the cleaner, not turned into NaN."""
        df = read_employee_csv(str(csv_file))
        assert df.loc[0, "termdate"] == ""

    def test_strips_bom_and_quotes_from_header(self, csv_file):
        df = read_employee_csv(str(csv_file))
        assert list(df.columns)[0] == "id"
        assert set(REQUIRED_COLUMNS) <= set(df.columns)

    def test_missing_file(self, tmp_path):
        with pytest.raises(RawLoadError):
            read_employee_csv(str(tmp_path / "nope.csv"))

    def test_missing_columns(self, tmp_path, raw_employees):
        path = tmp_path / "partial.csv"
        raw_employees.drop(columns=["termdate"]).to_csv(path, index=False)
        with pytest.raises(RawLoadError) as exc_info:
            read_employee_csv(str(path))
        assert exc_info.value.details["missing_columns"] == ["termdate"]


class TestLoadRawEmployees:
    """Tests for load_raw_employees."""

    def test_all_text_columns(self, engine, raw_employees):
        assert load_raw_employees(raw_employees, engine) == 6
        with engine.connect() as conn:
            table = reflect_table(conn, "employees")
            assert all(c.type.python_type is str for c in table.columns)

    def test_replaces_existing_table(self, engine, raw_employees):
        load_raw_employees(raw_employees, engine)
        load_raw_employees(raw_employees.head(2), engine)
        with engine.connect() as conn:
            assert len(read_table(conn, "employees")) == 2


class TestRunRawLoad:
    def test_returns_summary(self, engine, csv_file):
        result = run_raw_load(str(csv_file), engine)
        assert result == {"file": "Human Resources.csv", "employees": 6}
