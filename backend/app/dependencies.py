from typing import Optional

from fastapi import Depends, Header

from app.services.conversations import ConversationStore
from app.services.marketplace import MarketplaceClient
from app.services.storage import KeyValueStorage, get_storage


def get_marketplace(authorization: Optional[str] = Header(None)) -> MarketplaceClient:
    # The caller's credentials are forwarded as-is; this service does not authenticate.
    return MarketplaceClient(authorization=authorization)


async def get_kv_storage() -> KeyValueStorage:
    return await get_storage()


async def get_conversation_store(
    storage: KeyValueStorage = Depends(get_kv_storage),
    client: MarketplaceClient = Depends(get_marketplace),
) -> ConversationStore:
    return ConversationStore(storage=storage, transport=client)
