"""
Cart and checkout business rules.

Carts are looked up by the owner's email. Every write to a cart matches on
its `version` field and bumps it, so two requests racing on the same cart
cannot both apply their change: the loser gets a ConflictError.

Checkout touches two documents. The wallet debit is written together with a
`pending_checkout` record on the user, then the cart is emptied and stamped
with the same checkout id. Whatever interrupts the sequence, the pending
record says what was charged and the cart stamp says whether it was emptied,
so settle_pending_checkout can always finish the checkout or refund it.
"""
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

import database
from errors import (
    ERROR_ADDRESS_NOT_SET,
    ERROR_CART_CHANGED,
    ERROR_CART_EMPTY,
    ERROR_CHECKOUT_IN_PROGRESS,
    ERROR_INSUFFICIENT_BALANCE,
    ERROR_INTERNAL,
    ERROR_INVALID_QUANTITY,
    ERROR_NO_CART,
    ERROR_NO_CART_FOR_UPDATE,
    ERROR_PRODUCT_IN_CART,
    ERROR_PRODUCT_NOT_IN_CART,
    ERROR_PRODUCT_NOT_IN_DB,
    BadRequestError,
    ConflictError,
    InternalError,
    NotFoundError,
)
from log_config import get_logger, sanitize_string_for_logging
from product_service import get_product_by_id
from schemas import Cart as CartSchema, CartItem
from user_service import has_set_non_default_address

logger = get_logger(__name__)


def _find_cart(user: dict):
    return database.get_db()["cart"].find_one({"email": user["email"]})


def _create_cart(user: dict) -> dict:
    try:
        database.create_document("cart", CartSchema(email=user["email"]))
    except DuplicateKeyError:
        # another request created it first, use that one
        pass
    except PyMongoError:
        logger.exception("Cart creation failed for %s", sanitize_string_for_logging(user["email"]))
        raise InternalError(ERROR_INTERNAL)
    cart = _find_cart(user)
    if cart is None:
        raise InternalError(ERROR_INTERNAL)
    logger.info("Created cart for %s", sanitize_string_for_logging(user["email"]))
    return cart


def _find_item_index(cart: dict, product_id) -> int:
    oid = database.to_object_id(product_id)
    if oid is None:
        return -1
    for i, item in enumerate(cart["cart_items"]):
        if item["product"]["_id"] == oid:
            return i
    return -1


def _line_item(product: dict, quantity: int) -> dict:
    try:
        return CartItem(product=product, quantity=quantity).model_dump()
    except ValidationError:
        raise BadRequestError(ERROR_INVALID_QUANTITY)


def _save_items(cart: dict, items: List[dict], extra: Optional[dict] = None):
    fields = {"cart_items": items, "updated_at": datetime.now(timezone.utc)}
    if extra:
        fields.update(extra)
    res = database.get_db()["cart"].update_one(
        {"_id": cart["_id"], "version": cart["version"]},
        {"$set": fields, "$inc": {"version": 1}},
    )
    if res.matched_count == 0:
        raise ConflictError(ERROR_CART_CHANGED)
    cart.update(fields)
    cart["version"] += 1


def get_cart_total(cart: dict) -> float:
    return sum(item["product"]["cost"] * item["quantity"] for item in cart["cart_items"])


def get_cart_by_user(user: dict) -> dict:
    cart = _find_cart(user)
    if cart is None:
        raise NotFoundError(ERROR_NO_CART)
    return cart


def add_product_to_cart(user: dict, product_id: str, quantity: int) -> dict:
    """
    Add a new line item, creating the cart on first use.

    A product already in the cart is rejected rather than merged; clients
    change quantities with update_product_in_cart.
    """
    cart = _find_cart(user)
    if cart is None:
        cart = _create_cart(user)

    if _find_item_index(cart, product_id) != -1:
        raise BadRequestError(ERROR_PRODUCT_IN_CART)

    product = get_product_by_id(product_id)
    if not product:
        raise BadRequestError(ERROR_PRODUCT_NOT_IN_DB)

    _save_items(cart, cart["cart_items"] + [_line_item(product, quantity)])
    return cart


def update_product_in_cart(user: dict, product_id: str, quantity: int) -> dict:
    cart = _find_cart(user)
    if cart is None:
        raise BadRequestError(ERROR_NO_CART_FOR_UPDATE)

    if not get_product_by_id(product_id):
        raise BadRequestError(ERROR_PRODUCT_NOT_IN_DB)

    idx = _find_item_index(cart, product_id)
    if idx == -1:
        raise BadRequestError(ERROR_PRODUCT_NOT_IN_CART)

    items = list(cart["cart_items"])
    items[idx] = _line_item(items[idx]["product"], quantity)
    _save_items(cart, items)
    return cart


def delete_product_from_cart(user: dict, product_id: str) -> None:
    cart = _find_cart(user)
    if cart is None:
        raise BadRequestError(ERROR_NO_CART)

    idx = _find_item_index(cart, product_id)
    if idx == -1:
        raise BadRequestError(ERROR_PRODUCT_NOT_IN_CART)

    _save_items(cart, cart["cart_items"][:idx] + cart["cart_items"][idx + 1:])


def settle_pending_checkout(user_id) -> None:
    """
    Finish or refund a checkout that stopped after the wallet debit.

    If the cart carries the checkout's stamp it was emptied and the debit
    stands. Otherwise the cart version is bumped first, so a checkout still
    running can no longer empty the cart, and the debit is refunded. Both
    outcomes are conditional on the pending record, so running this twice
    or alongside the checkout itself never refunds more than once.
    """
    db = database.get_db()
    user = db["user"].find_one({"_id": user_id})
    pending = user.get("pending_checkout") if user else None
    if not pending:
        return

    carts = db["cart"]
    cart = carts.find_one({"_id": pending["cart_id"]})
    if cart is not None and cart.get("last_checkout_id") != pending["id"]:
        carts.update_one({"_id": cart["_id"], "version": pending["cart_version"]}, {"$inc": {"version": 1}})
        cart = carts.find_one({"_id": pending["cart_id"]})

    owner = {"_id": user_id, "pending_checkout.id": pending["id"]}
    if cart is not None and cart.get("last_checkout_id") == pending["id"]:
        db["user"].update_one(owner, {"$unset": {"pending_checkout": ""}})
        logger.info("Completed interrupted checkout %s", pending["id"])
        return

    res = db["user"].update_one(
        owner,
        {"$inc": {"wallet_money": pending["total"]}, "$unset": {"pending_checkout": ""}},
    )
    if res.modified_count:
        logger.warning("Refunded %s for unfinished checkout %s", pending["total"], pending["id"])


def settle_pending_checkouts() -> int:
    """Settle every checkout left pending, e.g. by a crashed worker. Run at startup."""
    users = database.get_db()["user"].find({"pending_checkout": {"$exists": True}}, {"_id": 1})
    count = 0
    for user in list(users):
        settle_pending_checkout(user["_id"])
        count += 1
    return count


def checkout(user: dict) -> dict:
    """
    Pay for the cart from the user's wallet and empty it.

    The debit only applies while the stored balance still covers the total
    and no other checkout of this user is pending. The cart is then emptied
    under its version check. Failures after the debit go through
    settle_pending_checkout, which refunds only when the cart was not
    emptied; if even that fails the pending record stays behind and the
    next checkout or a restart settles it.
    """
    settle_pending_checkout(user["_id"])

    cart = _find_cart(user)
    if cart is None:
        raise NotFoundError(ERROR_NO_CART)
    if not cart["cart_items"]:
        raise BadRequestError(ERROR_CART_EMPTY)
    if not has_set_non_default_address(user):
        raise BadRequestError(ERROR_ADDRESS_NOT_SET)

    total = get_cart_total(cart)
    if user.get("wallet_money", 0) < total:
        raise BadRequestError(ERROR_INSUFFICIENT_BALANCE)

    checkout_id = uuid4().hex
    users = database.get_db()["user"]
    debited = users.find_one_and_update(
        {"_id": user["_id"], "wallet_money": {"$gte": total}, "pending_checkout": None},
        {
            "$inc": {"wallet_money": -total},
            "$set": {
                "pending_checkout": {
                    "id": checkout_id,
                    "cart_id": cart["_id"],
                    "cart_version": cart["version"],
                    "total": total,
                },
            },
        },
        return_document=ReturnDocument.AFTER,
    )
    if debited is None:
        current = users.find_one({"_id": user["_id"]})
        if current and current.get("pending_checkout"):
            raise ConflictError(ERROR_CHECKOUT_IN_PROGRESS)
        # balance was spent by a concurrent request since it was read
        raise BadRequestError(ERROR_INSUFFICIENT_BALANCE)

    email = sanitize_string_for_logging(user["email"])
    try:
        _save_items(cart, [], {"last_checkout_id": checkout_id})
    except ConflictError:
        # cart untouched by this checkout, so the debit goes back
        logger.warning("Checkout for %s lost a race with a cart change, refunding", email)
        try:
            settle_pending_checkout(user["_id"])
        except PyMongoError:
            logger.exception("Refund for checkout %s deferred", checkout_id)
        raise
    except PyMongoError:
        # the write may have landed before the error surfaced
        logger.exception("Cart write failed during checkout %s", checkout_id)
        try:
            settle_pending_checkout(user["_id"])
            cart = _find_cart(user)
        except PyMongoError:
            raise InternalError(ERROR_INTERNAL)
        if cart is None or cart.get("last_checkout_id") != checkout_id:
            raise InternalError(ERROR_INTERNAL)
    else:
        try:
            users.update_one(
                {"_id": user["_id"], "pending_checkout.id": checkout_id},
                {"$unset": {"pending_checkout": ""}},
            )
        except PyMongoError:
            # checkout already committed, the leftover record settles as complete
            logger.warning("Could not clear pending record of checkout %s", checkout_id)

    user["wallet_money"] = debited["wallet_money"]
    user.pop("pending_checkout", None)
    logger.info("Checkout complete for %s, charged %s", email, total)
    return cart
