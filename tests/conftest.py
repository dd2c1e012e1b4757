"""
Pytest configuration and fixtures for vMTB tests.
"""
import os
import sys

import pytest
import pymupdf
from PIL import Image

# Ensure src is in path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from vmtb_core.model import PatientData, UploadedFile  # noqa: E402
from vmtb_core.raster import bytes_to_data_url, image_to_data_url  # noqa: E402
from vmtb_core.session import CaseWorkflowSession  # noqa: E402


def make_pdf_bytes(page_count: int = 3, width: float = 120, height: float = 80) -> bytes:
    """
    Build a small PDF in memory, one labelled page per index.

    Page size is in points; at scale 2 each page renders to 2x pixels.
    """
    doc = pymupdf.open()
    for i in range(page_count):
        page = doc.new_page(width=width, height=height)
        page.insert_text((10, 40), f"Page {i + 1}", fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data


def make_image_file(name: str = "scan.png", size=(200, 200), color=(255, 255, 255)) -> UploadedFile:
    img = Image.new("RGB", size, color)
    return UploadedFile.create(name, "image/png", image_to_data_url(img))


def make_pdf_file(name: str = "report.pdf", page_count: int = 3) -> UploadedFile:
    data = make_pdf_bytes(page_count)
    return UploadedFile.create(name, "application/pdf", bytes_to_data_url(data, "application/pdf"), size=len(data))


@pytest.fixture
def white_raster():
    """200x200 opaque white RGB raster."""
    return Image.new("RGB", (200, 200), (255, 255, 255))


@pytest.fixture
def patient():
    return PatientData(
        name="Jane Doe",
        age="54",
        sex="Female",
        cancer_type="Lung",
        case_name="Case 1",
    )


@pytest.fixture
def session(patient):
    s = CaseWorkflowSession()
    s.start_case(patient)
    return s


@pytest.fixture
def image_file_factory():
    return make_image_file


@pytest.fixture
def pdf_file_factory():
    return make_pdf_file


@pytest.fixture
def pdf_bytes_factory():
    return make_pdf_bytes
