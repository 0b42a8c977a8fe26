"""Storage backends for TalentPay."""

from talentpay.storage.base import CommerceStorage
from talentpay.storage.memory import InMemoryCommerceStorage
from talentpay.storage.supabase import SupabaseCommerceStorage

__all__ = [
    "CommerceStorage",
    "InMemoryCommerceStorage",
    "SupabaseCommerceStorage",
]
