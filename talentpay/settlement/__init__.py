"""Review settlement workflow.

Service:
- SettlementService: Approve (settle payment) or reject (request revision) a review
"""

from talentpay.settlement.service import RejectionResult, SettlementResult, SettlementService

__all__ = [
    "SettlementService",
    "SettlementResult",
    "RejectionResult",
]
