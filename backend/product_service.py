from typing import List, Optional

import database


def get_products() -> List[dict]:
    return database.get_documents("product")


def get_product_by_id(product_id) -> Optional[dict]:
    oid = database.to_object_id(product_id)
    if oid is None:
        return None
    return database.get_db()["product"].find_one({"_id": oid})
