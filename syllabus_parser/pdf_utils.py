# -*- coding: utf-8 -*-
import base64
import binascii
import io
import logging
from pathlib import Path

import pdfplumber
import requests

logger = logging.getLogger(__name__)

DATA_URL_MARKER = "base64,"
DOWNLOAD_TIMEOUT = 30.0


class PdfExtractionError(ValueError):
    """The PDF payload could not be decoded or read."""


def decode_pdf_content(data: str) -> bytes:
    """
    Decodes a base64 PDF payload, with or without a data URL prefix.
    :param data: Base64 text, e.g. "data:application/pdf;base64,JVBERi0...".
    :return: The raw PDF bytes.
    """
    if not data:
        raise PdfExtractionError("No PDF data provided")
    encoded = data.split(DATA_URL_MARKER, 1)[1] if DATA_URL_MARKER in data else data
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise PdfExtractionError(f"Invalid base64 PDF data: {e}") from e


def extract_pdf_pages_from_content(content: bytes) -> list[str]:
    """
    Extracts the text of every non-empty page from in-memory PDF bytes.
    :param content: Raw PDF bytes.
    :return: One string per page that has text.
    """
    pages: list[str] = []
    try:
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            for page in pdf.pages:
                text = page.extract_text()
                if text:
                    pages.append(text.strip())
    except Exception as e:
        # pdfminer raises a variety of parser errors for damaged files
        raise PdfExtractionError(f"Unable to read PDF: {e}") from e
    logger.info("Extracted text from %d PDF pages", len(pages))
    return pages


def _load_pdf_bytes(path_or_url: str) -> bytes:
    """
    Loads a PDF from a local path or a URL.
    :param path_or_url: A local file path or a URL to a PDF file.
    :return: The PDF bytes.
    """
    if path_or_url.startswith('http://') or path_or_url.startswith('https://'):
        response = requests.get(path_or_url, timeout=DOWNLOAD_TIMEOUT)
        response.raise_for_status()
        return response.content
    path = Path(path_or_url)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    return path.read_bytes()


def extract_pdf_pages(path_or_url: str) -> list[str]:
    """
    Extracts text from a local or remote PDF.
    :param path_or_url: A local file path or a URL to a PDF file.
    :return: The text contents of the PDF, one entry per page.
    """
    return extract_pdf_pages_from_content(_load_pdf_bytes(path_or_url))
