from .user import User
from .product import Product
from .order import Order, OrderItem
from .webhook_event import WebhookEvent
from .cart import CartItem
from .address import Address
