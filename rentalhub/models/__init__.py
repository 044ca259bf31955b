"""
RentalHub Backend — ORM Models
================================

Importing this package registers every table on `Base.metadata`, which is
what Alembic autogenerate, the setup script and relationship() string
references rely on.
"""

from rentalhub.models.user import User
from rentalhub.models.facility import Facility
from rentalhub.models.court import Court
from rentalhub.models.product import Product
from rentalhub.models.booking import Booking
from rentalhub.models.rental import RentalItem, RentalOrder
from rentalhub.models.cart import CartItem
from rentalhub.models.review import Review
from rentalhub.models.payment import Payment, WebhookLog
from rentalhub.models.notification import Notification

__all__ = [
    "User",
    "Facility",
    "Court",
    "Product",
    "Booking",
    "RentalOrder",
    "RentalItem",
    "CartItem",
    "Review",
    "Payment",
    "WebhookLog",
    "Notification",
]
