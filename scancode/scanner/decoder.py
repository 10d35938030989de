"""
==============================================================================
Barcode Decoder Module
==============================================================================

Decode capability backed by pyzbar.

A frame with no barcode decodes to an empty list. Only genuine decoder
failures raise DecodeFault.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import cv2
import numpy as np
from pyzbar.pyzbar import ZBarSymbol, decode
from pyzbar.pyzbar_error import PyZbarError

from scancode.core.exceptions import DecodeFault
from scancode.scanner.results import DecodedValue


# Module logger
logger = logging.getLogger(__name__)


class BarcodeDecoder:
    """
    Multi-format barcode decoder.

    Attributes:
        symbols: Symbologies to look for (None = all supported by zbar)

    Example:
        >>> decoder = BarcodeDecoder()
        >>> decoder.decode(frame)
        [DecodedValue(text='5901234123457', format='EAN13')]
    """

    def __init__(self, formats: Optional[Iterable[str]] = None) -> None:
        """
        Initialize decoder.

        Args:
            formats: Symbology names to restrict decoding to (e.g. ["EAN13", "QRCODE"])

        Raises:
            ValueError: If a format name is unknown to zbar
        """
        self._symbols: Optional[List[ZBarSymbol]] = None

        if formats:
            try:
                self._symbols = [ZBarSymbol[name.upper()] for name in formats]
            except KeyError as e:
                raise ValueError(f"Unknown barcode format: {e.args[0]}") from e

        logger.debug(f"Decoder created (formats: {formats or 'all'})")

    def decode(self, frame: np.ndarray) -> List[DecodedValue]:
        """
        Decode every barcode visible in a frame.

        Args:
            frame: OpenCV image (BGR or grayscale numpy array)

        Returns:
            Decoded values in detection order, empty if none found

        Raises:
            DecodeFault: If the frame cannot be processed
        """
        if frame is None or frame.size == 0:
            return []

        try:
            gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY) if frame.ndim == 3 else frame
            barcodes = decode(gray, symbols=self._symbols)
        except (PyZbarError, cv2.error, TypeError, ValueError) as e:
            raise DecodeFault(f"Decode error: {e}", e) from e

        return [
            DecodedValue(
                text=barcode.data.decode("utf-8", errors="replace"),
                format=barcode.type,
            )
            for barcode in barcodes
        ]

    def reset(self) -> None:
        """Halt decoding. pyzbar keeps no state between frames."""
        logger.debug("Decoder reset")
