import uuid

import shortuuid


def generate_id() -> str:
    return str(uuid.uuid4())


def generate_transaction_reference(prefix: str = "txn") -> str:
    return f"{prefix}_{shortuuid.ShortUUID().random(length=12)}"
