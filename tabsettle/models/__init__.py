from tabsettle.models.table import Table, TableStatus
from tabsettle.models.table_session import TableSession, TableSessionStatus, ClosingMethod
from tabsettle.models.order import Order, OrderStatus
from tabsettle.models.order_item import OrderItem
from tabsettle.models.session_payment import SessionPayment, PaymentMethod, PaidItem
from tabsettle.models.session_total_override import SessionTotalOverride
from tabsettle.models.shop_settings import ShopSettings
