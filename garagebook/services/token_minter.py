"""
Booking token minter.

Creates signed JWT tokens that encode:
- Booking ID (guarantees uniqueness across bookings)
- A random nonce (fresh entropy per mint, so tokens are not guessable)
- Issued-at timestamp

The token is rendered as a QR code for the customer to show at the garage:
data:image/png;base64,iVBORw0KGgo...
"""
import asyncio
import base64
import secrets
from datetime import datetime, timezone
from io import BytesIO
from typing import Optional

import jwt
import qrcode
from qrcode.exceptions import DataOverflowError

from garagebook.api.middleware.error_handler import EncodingException
from garagebook.lib.logging import get_logger
from garagebook.lib.settings import settings


logger = get_logger(__name__)

TOKEN_TYPE = "booking_qr"


class TokenMinter:
    """
    Mint, verify and render booking tokens.

    Tokens are HS256 JWTs; they do not expire because the QR code must stay
    valid for the life of the booking.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        box_size: Optional[int] = None,
        border: Optional[int] = None,
    ):
        """
        Initialize token minter.

        Args:
            secret_key: JWT signing key (defaults to settings.secret_key)
            box_size: QR module size in pixels (defaults to settings.qr_box_size)
            border: QR quiet zone in modules (defaults to settings.qr_border)
        """
        self.secret_key = secret_key if secret_key is not None else settings.secret_key

        if not self.secret_key:
            raise ValueError("Secret key is required for token signing")

        self.algorithm = "HS256"
        self.box_size = box_size or settings.qr_box_size
        self.border = border if border is not None else settings.qr_border

    def mint(self, booking_id: int, salt: Optional[str] = None) -> str:
        """
        Mint a token bound to a booking.

        Args:
            booking_id: ID of the persisted booking
            salt: Nonce to embed; a fresh random one is drawn when omitted

        Returns:
            JWT token string

        Example:
            >>> token = minter.mint(42)
            >>> minter.decode(token)
            42
        """
        payload = {
            "type": TOKEN_TYPE,
            "bid": booking_id,
            "nonce": salt or secrets.token_hex(8),
            "iat": int(datetime.now(timezone.utc).timestamp()),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> Optional[int]:
        """
        Verify a token and return the booking ID it was minted for.

        Returns:
            Booking ID if the token is valid, None otherwise
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
            )
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid booking token: {e}")
            return None

        if payload.get("type") != TOKEN_TYPE:
            logger.warning("Invalid token type", extra={"type": payload.get("type")})
            return None

        booking_id = payload.get("bid")
        if not isinstance(booking_id, int):
            return None
        return booking_id

    def encode(self, token: str) -> str:
        """
        Render a token as a PNG QR code data URL.

        Raises:
            EncodingException: if the token cannot be rendered
        """
        try:
            qr = qrcode.QRCode(box_size=self.box_size, border=self.border)
            qr.add_data(token)
            qr.make(fit=True)

            img = qr.make_image(fill_color="black", back_color="white")
            buffer = BytesIO()
            img.save(buffer, format="PNG")
        except (DataOverflowError, ValueError, OSError) as e:
            raise EncodingException(f"Could not render booking token: {e}") from e

        qr_code_base64 = base64.b64encode(buffer.getvalue()).decode()
        return f"data:image/png;base64,{qr_code_base64}"

    async def encode_async(self, token: str) -> str:
        """Render off the event loop; QR rendering is CPU-bound."""
        return await asyncio.to_thread(self.encode, token)


# Factory function
def get_token_minter() -> TokenMinter:
    """
    Get TokenMinter instance.

    Returns:
        TokenMinter configured with app settings
    """
    return TokenMinter()
