from farmkonnect.api.models.user import User
from farmkonnect.api.models.audit import AuditLog
from farmkonnect.api.models.farm import Farm
from farmkonnect.api.models.crop import Crop, CropCycle, SoilTest, YieldRecord
from farmkonnect.api.models.livestock import Animal
from farmkonnect.api.models.finance import Expense, Revenue, Budget, Invoice
from farmkonnect.api.models.marketplace import Product, CartItem, Order, OrderItem
from farmkonnect.api.models.veterinary import Prescription, VeterinaryAlert
from farmkonnect.api.models.notification import PushSubscription, NotificationLog

__all__ = [
    "User",
    "AuditLog",
    "Farm",
    "Crop",
    "CropCycle",
    "SoilTest",
    "YieldRecord",
    "Animal",
    "Expense",
    "Revenue",
    "Budget",
    "Invoice",
    "Product",
    "CartItem",
    "Order",
    "OrderItem",
    "Prescription",
    "VeterinaryAlert",
    "PushSubscription",
    "NotificationLog",
]
