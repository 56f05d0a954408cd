"""
QR code generation service
"""

import io
import qrcode
from PIL import Image

from app.core.config import settings

class QRService:
    """Service for generating QR codes"""

    @staticmethod
    def build_qr(payload: str) -> qrcode.QRCode:
        """Build a high error-correction QR code carrying ``payload`` verbatim"""
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_H,
            box_size=10,
            border=4,
        )
        qr.add_data(payload, optimize=0)
        qr.make(fit=True)
        return qr
    
    @staticmethod
    def generate_event_qr(event_id: str, format: str = 'PNG') -> bytes:
        """Render the scannable code for an event; the payload is the event id only"""
        qr = QRService.build_qr(event_id)
        
        img = qr.make_image(fill_color="black", back_color="white").get_image().convert("RGB")
        size = settings.QR_CODE_SIZE
        img = img.resize((size, size), Image.NEAREST)
        
        buffer = io.BytesIO()
        img.save(buffer, format=format)
        
        return buffer.getvalue()
