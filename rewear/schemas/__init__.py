from rewear.schemas.user import UserOut
from rewear.schemas.ledger import (
    BalanceOut, TransactionOut, PaginationOut, TransactionListResponse,
    PaymentOrderRequest, PaymentOrderResponse,
    PaymentVerifyRequest, PaymentVerifyResponse,
    PaymentFailRequest, PaymentFailResponse, AdminBonusRequest
)
from rewear.schemas.item import (
    ItemOut, ItemListResponse, ItemCreateRequest, ItemCreateResponse, ItemDeleteResponse
)
from rewear.schemas.swap import (
    SwapOut, SwapCreateRequest, SwapResponse, SwapApproveResponse, SwapListResponse
)
from rewear.schemas.admin import (
    AdminStatsResponse, AuditLogOut, AuditLogListResponse,
    ItemModerationResponse, BonusCreditResponse
)
