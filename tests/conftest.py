"""Pytest fixtures for file intake tests."""

import pytest

from clock import ManualClock
from intake import FileIntake
from upload import SourceFile

MB = 1024 * 1024


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def intake(clock) -> FileIntake:
    return FileIntake(clock=clock)


@pytest.fixture
def pdf_file() -> SourceFile:
    return SourceFile(
        name="a.pdf",
        size=2 * MB,
        mime_type="application/pdf",
        last_modified=1_700_000_000_000,
    )


@pytest.fixture
def png_file() -> SourceFile:
    return SourceFile(name="b.png", size=150_000, mime_type="image/png", data=b"\x89PNG fake")


@pytest.fixture
def docx_file() -> SourceFile:
    return SourceFile(
        name="c.docx",
        size=48_000,
        mime_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    )
