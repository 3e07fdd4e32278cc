"""
Tesseract OCR for uploaded invoice images and PDFs.

PDF pages are rendered and recognized one at a time; a failure on any page
aborts the remaining pages.
"""
import io
import logging
from pathlib import Path

import cv2
import numpy as np
import pytesseract
from pdf2image import convert_from_bytes, pdfinfo_from_bytes
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError
from PIL import Image, UnidentifiedImageError

import config

log = logging.getLogger(__name__)

_PDF_ERRORS = (PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError)


class OcrError(RuntimeError):
    """Text recognition failed; the message is shown to the user."""


class FileReadError(RuntimeError):
    """The uploaded bytes could not be opened as an image."""


def _upright(pil_img):
    """Turn a photographed page upright using Tesseract's orientation detection.

    OSD needs a few lines of text; when it cannot decide, the image is used
    as it is.
    """
    try:
        osd = pytesseract.image_to_osd(pil_img, output_type=pytesseract.Output.DICT)
    except (pytesseract.TesseractError, OSError) as e:
        log.debug('Orientation detection skipped: %s', e)
        return pil_img
    turn = osd.get('rotate', 0)
    if turn:
        log.debug('Rotating photo by %d degrees', turn)
        pil_img = pil_img.rotate(-turn, expand=True)
    return pil_img


def _preprocess_for_ocr(pil_img, rendered=False):
    """
    Prepare an image for Tesseract.

    Rendered PDF pages are already clean, upright and evenly lit, so they are
    only converted to grayscale. Photos and scans are turned upright,
    upscaled when small, and binarised with an adaptive threshold so shadows
    and uneven lighting across the sheet do not swallow the text.
    """
    gray = cv2.cvtColor(np.array(pil_img.convert('RGB')), cv2.COLOR_RGB2GRAY)
    if rendered:
        return Image.fromarray(gray)

    pil_img = _upright(pil_img)
    gray = cv2.cvtColor(np.array(pil_img.convert('RGB')), cv2.COLOR_RGB2GRAY)

    longest = max(gray.shape)
    if longest < config.OCR_MIN_SIDE:
        factor = config.OCR_MIN_SIDE / longest
        gray = cv2.resize(gray, None, fx=factor, fy=factor, interpolation=cv2.INTER_CUBIC)

    gray = cv2.medianBlur(gray, 3)
    binary = cv2.adaptiveThreshold(gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
                                   cv2.THRESH_BINARY, config.OCR_THRESHOLD_BLOCK, 11)
    return Image.fromarray(binary)


def open_image(data):
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise FileReadError(str(e)) from e
    return img


def recognize_image(pil_img, rendered=False):
    """Return the German+English text Tesseract reads from ``pil_img``."""
    try:
        enhanced = _preprocess_for_ocr(pil_img, rendered=rendered)
        return pytesseract.image_to_string(
            enhanced, lang=config.OCR_LANG, config=config.TESSERACT_CONFIG
        )
    except (RuntimeError, OSError, cv2.error) as e:
        # TesseractError is a RuntimeError, TesseractNotFoundError an OSError
        raise OcrError(str(e)) from e


def iter_pdf_pages(data):
    """Yield each PDF page as a PIL image, rendering only one page at a time."""
    try:
        page_count = pdfinfo_from_bytes(data)['Pages']
    except _PDF_ERRORS as e:
        raise OcrError(f'PDF render failed: {e}') from e
    for page_num in range(1, page_count + 1):
        try:
            pages = convert_from_bytes(data, dpi=config.PDF_RENDER_DPI,
                                       first_page=page_num, last_page=page_num)
        except _PDF_ERRORS as e:
            raise OcrError(f'PDF render failed on page {page_num}: {e}') from e
        if not pages:
            raise OcrError(f'PDF render failed on page {page_num}')
        yield pages[0]


def recognize_pdf(data):
    full_text = ''
    for page_num, page in enumerate(iter_pdf_pages(data), start=1):
        log.debug('Recognizing PDF page %d', page_num)
        full_text += recognize_image(page, rendered=True) + "\n"
    return full_text


def is_pdf(filename, mimetype=None):
    return mimetype == 'application/pdf' or Path(filename or '').suffix.lower() == '.pdf'


def recognize_upload(data, filename, mimetype=None):
    """OCR an uploaded file (image or PDF) and return the recognized text."""
    if is_pdf(filename, mimetype):
        return recognize_pdf(data)
    return recognize_image(open_image(data))
