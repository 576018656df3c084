"""
Database Schemas and request payloads for the shop backend.
Each collection model represents a MongoDB collection (collection name = class name lowercased).
"""
from typing import List, Optional
from pydantic import BaseModel, Field, EmailStr

from settings import DEFAULT_ADDRESS, DEFAULT_PAYMENT_OPTION, DEFAULT_WALLET_MONEY

# Users
class User(BaseModel):
    name: str
    email: EmailStr
    password_hash: str
    address: str = Field(default=DEFAULT_ADDRESS, description="Shipping address, DEFAULT_ADDRESS until set")
    wallet_money: float = Field(default=DEFAULT_WALLET_MONEY, ge=0)

# Products
class Product(BaseModel):
    name: str
    category: str
    cost: float = Field(ge=0)
    rating: float = Field(default=0, ge=0, le=5)
    image: Optional[str] = None

# Cart line items embed a copy of the product document
class CartItem(BaseModel):
    product: dict
    quantity: int = Field(ge=1)

# Carts, one per user email
class Cart(BaseModel):
    email: EmailStr
    cart_items: List[CartItem] = Field(default_factory=list)
    payment_option: str = DEFAULT_PAYMENT_OPTION
    version: int = 0


# ========== PAYLOADS ==========
class RegisterPayload(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=8)

class LoginPayload(BaseModel):
    email: EmailStr
    password: str

class AddressPayload(BaseModel):
    address: str = Field(min_length=20)

class AddToCartPayload(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)

class UpdateCartPayload(BaseModel):
    product_id: str
    quantity: int = Field(ge=0, description="0 removes the product from the cart")
