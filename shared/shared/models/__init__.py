from shared.models.user import Principal, TokenClaims
from shared.models.envelope import ApiResponse, ErrorResponse
from shared.models.pagination import PaginatedResponse

__all__ = ["Principal", "TokenClaims", "ApiResponse", "ErrorResponse", "PaginatedResponse"]
