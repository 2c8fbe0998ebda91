"""
OCR helper for uploaded task images.

Wraps Tesseract (through pytesseract) behind a single call so the API layer
only deals with bytes in and text out.
"""

import io
import logging
import os

import pytesseract
from PIL import Image, UnidentifiedImageError

from task_planner.errors import OCRError

logger = logging.getLogger(__name__)

TESSERACT_LANG = os.getenv("TESSERACT_LANG", "eng")


class TextExtractor:

    def __init__(self, lang: str = TESSERACT_LANG):
        self.lang = lang

    def extract(self, image_bytes: bytes) -> str:
        """
        Run OCR over raw image bytes.

        Returns the stripped text, which may be empty. Raises OCRError if the
        bytes are not a readable image or Tesseract fails.
        """
        try:
            with Image.open(io.BytesIO(image_bytes)) as image:
                text = pytesseract.image_to_string(image, lang=self.lang)
        except UnidentifiedImageError as e:
            raise OCRError("Uploaded file is not a readable image") from e
        except pytesseract.TesseractError as e:
            logger.error(f"Tesseract failed: {e}")
            raise OCRError(f"OCR failed: {e}") from e
        except pytesseract.TesseractNotFoundError as e:
            logger.error("Tesseract binary is not installed")
            raise OCRError("OCR engine not available") from e
        except Image.DecompressionBombError as e:
            raise OCRError("Image is too large to process") from e
        except OSError as e:
            # Truncated or corrupt data only fails once pixels are decoded
            logger.error(f"Could not decode image: {e}")
            raise OCRError(f"Could not read image: {e}") from e

        return text.strip()
