# db/models.py
"""
Snowflake Schema Models - the normalized layout consumed by the BI layer.

These models describe the tables the pipeline produces; they are never used
to create them (the pipeline builds them through its migrations).
"""

import pandas as pd
from sqlalchemy import Column, Date, ForeignKey, Integer, String, select
from sqlalchemy.orm import declarative_base, relationship, Session

Base = declarative_base()


class Ethnicity(Base):
    __tablename__ = "ethnicities"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, unique=True)

    def __repr__(self):
        return f"<Ethnicity(id={self.id}, name={self.name})>"


class Gender(Base):
    __tablename__ = "genders"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, unique=True)


class Location(Base):
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, unique=True)


class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, unique=True)

    jobtitles = relationship("JobTitle", back_populates="department")


class JobTitle(Base):
    """Job title within a department; the same title text can repeat across departments."""

    __tablename__ = "jobtitles"

    id = Column(Integer, primary_key=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False)
    jobtitle = Column(String, nullable=False)

    department = relationship("Department", back_populates="jobtitles")

    def __repr__(self):
        return f"<JobTitle(id={self.id}, dept={self.department_id}, title={self.jobtitle})>"


class State(Base):
    __tablename__ = "states"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, unique=True)

    cities = relationship("City", back_populates="state")


class City(Base):
    """City within a state; the same city name can repeat across states."""

    __tablename__ = "cities"

    id = Column(Integer, primary_key=True)
    state_id = Column(Integer, ForeignKey("states.id"), nullable=False)
    name = Column(String, nullable=False)

    state = relationship("State", back_populates="cities")


class Employee(Base):
    """Fact table after cleaning and normalization."""

    __tablename__ = "employees"

    id = Column(String, primary_key=True)
    first_name = Column(String)
    last_name = Column(String)
    birthdate = Column(Date)
    hire_date = Column(Date)
    termdate = Column(Date)
    age = Column(Integer)

    ethnicity_id = Column(Integer, ForeignKey("ethnicities.id"))
    gender_id = Column(Integer, ForeignKey("genders.id"))
    location_id = Column(Integer, ForeignKey("locations.id"))
    jobtitle_id = Column(Integer, ForeignKey("jobtitles.id"))
    city_id = Column(Integer, ForeignKey("cities.id"))

    ethnicity = relationship("Ethnicity")
    gender = relationship("Gender")
    location = relationship("Location")
    jobtitle = relationship("JobTitle")
    city = relationship("City")

    def __repr__(self):
        return f"<Employee(id={self.id}, hired={self.hire_date})>"


def reconstruct_employees(session: Session, with_keys: bool = False) -> pd.DataFrame:
    """
    Join the fact table back to its dimensions and rebuild the original
    text attributes (race, gender, location, department, jobtitle,
    location_city, location_state). With `with_keys` the fact foreign key
    columns are appended.
    """
    key_columns = [
        Employee.ethnicity_id, Employee.gender_id, Employee.location_id,
        Employee.jobtitle_id, Employee.city_id,
    ] if with_keys else []
    stmt = (
        select(
            Employee.id,
            Ethnicity.name.label("race"),
            Gender.name.label("gender"),
            Location.name.label("location"),
            Department.name.label("department"),
            JobTitle.jobtitle.label("jobtitle"),
            City.name.label("location_city"),
            State.name.label("location_state"),
            *key_columns,
        )
        .select_from(Employee)
        .outerjoin(Ethnicity, Employee.ethnicity_id == Ethnicity.id)
        .outerjoin(Gender, Employee.gender_id == Gender.id)
        .outerjoin(Location, Employee.location_id == Location.id)
        .outerjoin(JobTitle, Employee.jobtitle_id == JobTitle.id)
        .outerjoin(Department, JobTitle.department_id == Department.id)
        .outerjoin(City, Employee.city_id == City.id)
        .outerjoin(State, City.state_id == State.id)
        .order_by(Employee.id)
    )
    rows = session.execute(stmt).all()
    columns = [
        "id", "race", "gender", "location", "department",
        "jobtitle", "location_city", "location_state",
    ]
    columns += [c.key for c in key_columns]
    return pd.DataFrame(rows, columns=columns)
