"""Shared fixtures for bqui tests."""

from typing import List

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from bqui.models import Column, ColumnMode, Dataset, Project, Table, TablePreview, TableSchema


def make_datasets(*ids: str, project_id: str = "proj") -> List[Dataset]:
    """Datasets with the given ids."""
    return [Dataset(id=dataset_id, project_id=project_id) for dataset_id in ids]


def make_tables(dataset_id: str, *ids: str, project_id: str = "proj") -> List[Table]:
    """Tables with the given ids in one dataset."""
    return [Table(id=table_id, dataset_id=dataset_id, project_id=project_id) for table_id in ids]


@pytest.fixture
def projects() -> List[Project]:
    return [
        Project(id="proj", name="Main project"),
        Project(id="analytics-prod", name="Analytics"),
        Project(id="sandbox", name="Sandbox"),
    ]


@pytest.fixture
def schema() -> TableSchema:
    return TableSchema(
        fields=(
            Column(name="id", type="INTEGER", mode=ColumnMode.REQUIRED, description="Primary key"),
            Column(name="email", type="STRING", description="Contact address"),
            Column(
                name="address",
                type="RECORD",
                fields=(
                    Column(name="city", type="STRING"),
                    Column(name="zip", type="STRING", description="Postal code"),
                ),
            ),
            Column(name="tags", type="STRING", mode=ColumnMode.REPEATED),
        )
    )


@pytest.fixture
def preview() -> TablePreview:
    return TablePreview(
        headers=("id", "email", "address", "tags"),
        rows=tuple(
            (str(i), f"user{i}@example.com", {"city": "Paris", "zip": "750{:02d}".format(i)}, ["a", "b"])
            for i in range(25)
        ),
    )


@pytest.fixture
def engine():
    """In-memory SQLite engine shared across sessions."""
    # StaticPool keeps the single in-memory connection alive between sessions
    return create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
