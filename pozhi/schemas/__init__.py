from .token import Token, TokenData
from .user import (
    UserBase,
    UserCreate,
    UserUpdate,
    User,
    ProfileUpdate,
    Profile
)
from .product import (
    ProductBase,
    ProductCreate,
    ProductUpdate,
    Product
)
from .order import (
    OrderItemIn,
    OrderCreate,
    OrderFromCart,
    OrderCreateInternal,
    OrderCancel,
    OrderStatusUpdate,
    OrderItem,
    Order
)
from .payment import (
    PaymentIntentCreateRequest,
    PaymentIntentCreateResponse,
    WebhookAck
)
from .cart import (
    CartItemIn,
    CartItemUpdate,
    CartItem,
    Cart
)
from .address import (
    AddressCreate,
    AddressUpdate,
    Address
)
