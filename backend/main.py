import os
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Depends, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import database
from database import to_public
from auth import generate_auth_tokens, get_current_user, login_user_with_email_and_password
from errors import ERROR_FORBIDDEN, ERROR_PRODUCT_NOT_FOUND, ApiError, ForbiddenError, NotFoundError
from log_config import get_logger
from schemas import AddressPayload, AddToCartPayload, LoginPayload, RegisterPayload, UpdateCartPayload
from settings import PORT
import cart_service
import product_service
import user_service

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        database.ensure_indexes()
        logger.info("Database indexes ensured")
        settled = cart_service.settle_pending_checkouts()
        if settled:
            logger.warning("Settled %s interrupted checkouts", settled)
    else:
        logger.warning("DATABASE_URL / DATABASE_NAME not set, running without a database")
    yield


app = FastAPI(title="Shop Cart API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"code": exc.status_code, "message": exc.message})


@app.get("/")
def root():
    return {"status": "ok", "service": "Shop Cart Backend"}


@app.get("/test")
def test_database():
    _db = database.db
    ok = _db is not None
    return {
        "backend": "✅ Running",
        "database": "✅ Connected" if ok else "❌ Not Connected",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": os.getenv("DATABASE_NAME") or "-",
        "collections": (list(_db.list_collection_names()) if ok else []),
    }


# ========== AUTH ==========
@app.post("/api/auth/register", status_code=201)
def register(body: RegisterPayload):
    user = user_service.create_user(body.model_dump())
    return {"user": to_public(user), "tokens": generate_auth_tokens(user)}


@app.post("/api/auth/login")
def login(body: LoginPayload):
    user = login_user_with_email_and_password(body.email, body.password)
    return {"user": to_public(user), "tokens": generate_auth_tokens(user)}


# ========== USERS ==========
def _ensure_self(current_user: dict, user_id: str):
    if str(current_user["_id"]) != user_id:
        raise ForbiddenError(ERROR_FORBIDDEN)


@app.get("/api/users/{user_id}")
def get_user(user_id: str, q: Optional[str] = None, current_user: dict = Depends(get_current_user)):
    _ensure_self(current_user, user_id)
    if q == "address":
        return user_service.get_user_address_by_id(user_id, project_only=True)
    return to_public(user_service.get_user_by_id(user_id))


@app.put("/api/users/{user_id}")
def set_user_address(user_id: str, body: AddressPayload, current_user: dict = Depends(get_current_user)):
    _ensure_self(current_user, user_id)
    address = user_service.set_address(current_user, body.address)
    return {"address": address}


# ========== PRODUCTS ==========
@app.get("/api/products")
def list_products():
    return {"items": to_public(product_service.get_products())}


@app.get("/api/products/{product_id}")
def get_product(product_id: str):
    product = product_service.get_product_by_id(product_id)
    if not product:
        raise NotFoundError(ERROR_PRODUCT_NOT_FOUND)
    return to_public(product)


# ========== CART ==========
@app.get("/api/cart")
def get_cart(current_user: dict = Depends(get_current_user)):
    return to_public(cart_service.get_cart_by_user(current_user))


@app.post("/api/cart", status_code=201)
def add_to_cart(body: AddToCartPayload, current_user: dict = Depends(get_current_user)):
    cart = cart_service.add_product_to_cart(current_user, body.product_id, body.quantity)
    return to_public(cart)


@app.put("/api/cart")
def update_cart(body: UpdateCartPayload, current_user: dict = Depends(get_current_user)):
    if body.quantity == 0:
        cart_service.delete_product_from_cart(current_user, body.product_id)
        return Response(status_code=204)
    cart = cart_service.update_product_in_cart(current_user, body.product_id, body.quantity)
    return to_public(cart)


@app.put("/api/cart/checkout", status_code=204)
def checkout(current_user: dict = Depends(get_current_user)):
    cart_service.checkout(current_user)
    return Response(status_code=204)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
