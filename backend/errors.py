"""
Service-layer errors.

Services raise these as soon as a rule is violated; the FastAPI app turns
them into `{"code": ..., "message": ...}` responses.
"""
from typing import Optional

# User errors
ERROR_USER_NOT_FOUND = "User not found"
ERROR_EMAIL_TAKEN = "Email already taken"
ERROR_INCORRECT_LOGIN = "Incorrect email or password"
ERROR_UNAUTHENTICATED = "Please authenticate"
ERROR_FORBIDDEN = "User not authorized to access this resource"

# Cart errors
ERROR_NO_CART = "User does not have a cart"
ERROR_NO_CART_FOR_UPDATE = "User does not have a cart. Use POST to create cart and add a product"
ERROR_PRODUCT_IN_CART = "Product already in cart. Use the cart sidebar to update or remove product from cart"
ERROR_PRODUCT_NOT_IN_DB = "Product doesn't exist in database"
ERROR_PRODUCT_NOT_IN_CART = "Product not in cart"
ERROR_CART_EMPTY = "User cart is empty"
ERROR_ADDRESS_NOT_SET = "Address is not set"
ERROR_INSUFFICIENT_BALANCE = "Wallet Balance is Insufficient"
ERROR_CART_CHANGED = "Cart was modified by another request, please retry"
ERROR_CHECKOUT_IN_PROGRESS = "Another checkout is in progress, please retry"
ERROR_INVALID_QUANTITY = "Quantity must be at least 1"

# Product errors
ERROR_PRODUCT_NOT_FOUND = "Product not found"

# Generic errors
ERROR_INTERNAL = "500 Internal Server Error"
ERROR_DB_NOT_CONFIGURED = "Database not configured"


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(ApiError):
    status_code = 400


class UnauthorizedError(ApiError):
    status_code = 401


class ForbiddenError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class AlreadyExistsError(ApiError):
    # 409 rather than the 200 the first version of this API sent back
    status_code = 409


class ConflictError(ApiError):
    status_code = 409


class InternalError(ApiError):
    status_code = 500
