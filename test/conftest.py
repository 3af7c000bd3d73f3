"""Shared fixtures: a throwaway SQLite database per test and a small HR export."""
from datetime import date

import pandas as pd
import pytest

from db.db_utils import get_engine
from hr_etl.cleaner import run_cleaner
from hr_etl.raw import load_raw_employees

AS_OF = date(2025, 1, 1)

RAW_ROWS = [
    # id, first, last, birthdate, race, gender, department, jobtitle, location,
    # hire_date, termdate, city, state
    ("00-001", "Ann", "Lee", "02/05/1955", "White", "Female", "Engineering",
     "Business Analyst", "Headquarters", "03/15/2015", "", "Bloomington", "Illinois"),
    ("00-002", "Bo", "Kim", "11-23-1980", "Black or African American", "Male", "Engineering",
     "Software Engineer I", "Remote", "06-20-2012", "2018-03-15 00:00:00 UTC", "Cleveland", "Ohio"),
    ("00-003", "Cy", "Ng", "07/30/2010", "Asian", "Non-Conforming", "Human Resources",
     "HR Manager", "Headquarters", "01/10/2018", "2030-06-01 00:00:00 UTC", "Bloomington", "Indiana"),
    ("00-004", "Di", "Ruiz", "1985.04.12", "Hispanic or Latino", "Female", "Product Management",
     "Business Analyst", "Remote", "09-05-2016", "", "Warren", "Michigan"),
    ("00-005", "Ed", "Fox", "04-12-1990", "White", "Male", "Product Management",
     "Product Manager", "Headquarters", "02-28-2020", "2020-02-28 12:30:00 UTC", "Warren", "Ohio"),
    ("00-006", "Fe", "Ito", "12/25/1975", "Asian", "Female", "Engineering",
     "Software Engineer I", "Remote", "11/30/2010", "2019-11-02 00:00:00 UTC", "Cleveland", "Ohio"),
]

RAW_COLUMNS = [
    "id", "first_name", "last_name", "birthdate", "race", "gender", "department",
    "jobtitle", "location", "hire_date", "termdate", "location_city", "location_state",
]


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def raw_employees():
    return pd.DataFrame(RAW_ROWS, columns=RAW_COLUMNS)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'hr.db'}"


@pytest.fixture
def engine(database_url):
    engine = get_engine(database_url)
    yield engine
    engine.dispose()


@pytest.fixture
def loaded_engine(engine, raw_employees):
    load_raw_employees(raw_employees, engine)
    return engine


@pytest.fixture
def cleaned_engine(loaded_engine, as_of):
    run_cleaner(loaded_engine, as_of=as_of)
    return loaded_engine
