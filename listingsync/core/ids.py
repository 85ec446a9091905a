import uuid

def gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def gen_item_id() -> str:
    # Webflow item ids are 24-char hex (ObjectId shaped)
    return uuid.uuid4().hex[:24]
