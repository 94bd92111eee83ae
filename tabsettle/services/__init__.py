from tabsettle.services.engine import SettlementEngine
from tabsettle.services.exceptions import SettlementError
