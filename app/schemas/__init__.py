"""Schema exports."""

from app.schemas.auth import AuthUserResponse, LoginRequest, RegisterRequest, TokenResponse
from app.schemas.delivery import DeliveryQuoteRequest, DeliveryQuoteResponse
from app.schemas.order import OrderCreate, OrderItemPayload, OrderItemResponse, OrderResponse, OrderStatusUpdate
from app.schemas.review import ReviewCreate, ReviewRead
from app.schemas.wallet import WalletAmountRequest, WalletResponse, WalletTransactionRead

__all__ = [
    "AuthUserResponse",
    "LoginRequest",
    "RegisterRequest",
    "TokenResponse",
    "DeliveryQuoteRequest",
    "DeliveryQuoteResponse",
    "OrderCreate",
    "OrderItemPayload",
    "OrderItemResponse",
    "OrderResponse",
    "OrderStatusUpdate",
    "ReviewCreate",
    "ReviewRead",
    "WalletAmountRequest",
    "WalletResponse",
    "WalletTransactionRead",
]
