# MEXC futures history reporter
# Signed, paginated history queries against the MEXC contract API

from .dataflows.mexc_contract_api import (
    MexcContractClient,
    MexcApiException,
    ApiError,
    SignatureInputError,
)
from .models.history_models import HistoryFilters

__all__ = [
    "MexcContractClient",
    "MexcApiException",
    "ApiError",
    "SignatureInputError",
    "HistoryFilters",
]
