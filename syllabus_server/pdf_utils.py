# -*- coding: utf-8 -*-
import base64
import binascii
import io
import logging
import re
import tempfile
from pathlib import Path

import pdfplumber
import requests

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 30


def _load_pdf_path(path_or_url: str) -> str:
    """
    Loads a PDF from a local path or a URL and returns the local file path.
    :param path_or_url: A local file path or a URL to a PDF file.
    :return: The local file path to the PDF.
    """
    if path_or_url.startswith(("http://", "https://")):
        response = requests.get(path_or_url, timeout=DOWNLOAD_TIMEOUT)
        response.raise_for_status()
        with tempfile.NamedTemporaryFile(delete=False, suffix=".pdf") as tmp_file:
            tmp_file.write(response.content)
            return tmp_file.name

    path = Path(path_or_url)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    return str(path)


def _read_pages(source) -> list[str]:
    pages: list[str] = []
    with pdfplumber.open(source) as pdf:
        for page in pdf.pages:
            text = page.extract_text()
            if text:
                pages.append(text.strip())
        logger.debug("Read text from %d of %d page(s)", len(pages), len(pdf.pages))
    return pages


def extract_pdf_pages(path_or_url: str) -> list[str]:
    """
    Extracts the text of each page of a local or remote PDF.
    :param path_or_url: A local file path or a URL to a PDF file.
    :return: One string per page that has text.
    """
    return _read_pages(_load_pdf_path(path_or_url))


def extract_pdf_pages_from_content(content: bytes | str) -> list[str]:
    """
    Extracts page text from raw PDF bytes or a base64 string of them.
    :param content: PDF bytes, or base64 text as sent by upload clients.
    :return: One string per page that has text.
    """
    if isinstance(content, str):
        try:
            content = base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("PDF content is not valid base64") from e
    return _read_pages(io.BytesIO(content))


def normalize_pdf_text(text: str) -> str:
    """Joins hyphenated line breaks and collapses blank lines and runs of spaces."""
    text = text.replace("\r\n", "\n")
    text = re.sub(r"-\n", "", text)
    text = re.sub(r"\n+", "\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    return text.strip()
