from comanda.models.tenant_channel import TenantChannel
from comanda.models.business import Business
from comanda.models.delivery_zone import DeliveryZone
from comanda.models.bank_details import BankDetails
from comanda.models.product import Product
from comanda.models.invite_code import InviteCode
from comanda.models.admin import Admin
from comanda.models.admin_state import AdminConversationState
from comanda.models.customer_state import CustomerConversationState
from comanda.models.order import Order
from comanda.models.subscription import Subscription
from comanda.models.monthly_usage import MonthlyUsage
from comanda.models.processed_message import ProcessedMessage
from comanda.models.failed_message import FailedMessage
