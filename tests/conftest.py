"""
Shared fixtures: in-memory PDFs built with PyMuPDF and a scripted vision client.
"""
import sys
from pathlib import Path

import fitz  # PyMuPDF
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from models import BatchError  # noqa: E402


def build_pdf(pages, line_spacing=20, title=None):
    """Create a PDF with one text line per entry, one list of lines per page."""
    doc = fitz.open()
    for lines in pages:
        page = doc.new_page()
        y = 72
        for text in lines:
            page.insert_text((72, y), text, fontsize=11)
            y += line_spacing
    if title:
        doc.set_metadata({"title": title})
    data = doc.tobytes()
    doc.close()
    return data


class ScriptedVisionClient:
    """Returns canned JSON answers in order; an Exception entry is raised instead."""

    def __init__(self, responses, on_call=None):
        self.responses = list(responses)
        self.calls = []
        self.on_call = on_call

    def complete_json(self, prompt, images, detail="low"):
        self.calls.append({"prompt": prompt, "images": len(images), "detail": detail})
        if self.on_call:
            self.on_call(len(self.calls))
        response = self.responses.pop(0) if self.responses else BatchError("no response")
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def make_pdf():
    return build_pdf


@pytest.fixture
def three_page_script():
    """Synthetic play: one scene heading, two characters, five speeches."""
    return build_pdf([
        ["ACTE I SCENE 1", "JOURDAIN: Bonjour", "NICOLE: Bonjour monsieur."],
        ["JOURDAIN: Comment allez-vous", "aujourd'hui ?", "NICOLE: Fort bien."],
        ["JOURDAIN: Tant mieux.", "3"],
    ])


@pytest.fixture
def scripted_client():
    return ScriptedVisionClient
