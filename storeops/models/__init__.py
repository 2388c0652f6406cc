from storeops.models.user import User
from storeops.models.password_reset import PasswordResetToken
from storeops.models.category import Category
from storeops.models.product import Product
from storeops.models.order import Order, OrderItem
from storeops.models.inventory import InventoryLog
from storeops.models.notification import Notification
