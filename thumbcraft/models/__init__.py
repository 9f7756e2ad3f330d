from thumbcraft.models.user import User
from thumbcraft.models.entitlement import Entitlement
from thumbcraft.models.credit_ledger import CreditLedger
from thumbcraft.models.thumbnail import Thumbnail
from thumbcraft.models.payment import Payment

__all__ = [
    "User", "Entitlement", "CreditLedger",
    "Thumbnail", "Payment"
]
