"""
QR code generation for receipt documents

Produces the module matrix only, so the layout engine can draw the code
as vector squares and keep the document output reproducible.
"""

from dataclasses import dataclass
from typing import List

import qrcode
from qrcode.constants import ERROR_CORRECT_M


@dataclass(frozen=True)
class QRMatrix:
    """Square grid of dark (True) and light (False) modules"""
    modules: List[List[bool]]

    @property
    def size(self) -> int:
        return len(self.modules)


class QRCodeGenerator:
    """
    Builds QR matrices for short payloads such as receipt numbers

    Example:
        >>> matrix = QRCodeGenerator().matrix("PFX-2024-0001")
        >>> matrix.size > 0
        True
    """

    def __init__(self, border: int = 0) -> None:
        self._border = border

    def matrix(self, payload: str) -> QRMatrix:
        qr = qrcode.QRCode(
            version=None,
            error_correction=ERROR_CORRECT_M,
            box_size=1,
            border=self._border,
        )
        qr.add_data(payload)
        qr.make(fit=True)
        return QRMatrix(modules=[list(row) for row in qr.get_matrix()])
