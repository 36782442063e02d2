"""QR code rendering for short links.

Codes are rendered with ``segno`` as PNG data URIs so they can be stored on
the link record and embedded directly by clients.
"""

import segno

__all__ = ["QRCodeEncoder"]


class QRCodeEncoder:
    def __init__(self, scale: int = 10, border: int = 2, dark: str = "#000000", light: str = "#ffffff"):
        self.scale = scale
        self.border = border
        self.dark = dark
        self.light = light

    def encode(self, data: str) -> str:
        qr = segno.make_qr(data, error="m")
        return qr.png_data_uri(scale=self.scale, border=self.border, dark=self.dark, light=self.light)
