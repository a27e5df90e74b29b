from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.dependencies import get_conversation_store, get_marketplace
from app.schemas import ConversationEntry, ConversationsResponse, SendMessageRequest, UnreadResponse
from app.services.conversations import ConversationStore, UnknownCandidateError
from app.services.marketplace import MarketplaceClient, MarketplaceError, MessageDeliveryError

router = APIRouter()


def conversations_response(store: ConversationStore) -> ConversationsResponse:
    return ConversationsResponse(
        conversations=store.conversations,
        unread=store.unread,
        total_unread=store.total_unread(),
        candidates=store.candidates,
        partners=store.conversation_partners(),
    )


def unread_response(store: ConversationStore) -> UnreadResponse:
    return UnreadResponse(unread=store.unread, total_unread=store.total_unread())


@router.get("/{employer_id}", response_model=ConversationsResponse)
async def list_conversations(
    employer_id: str,
    store: ConversationStore = Depends(get_conversation_store),
):
    await store.load(employer_id)
    return conversations_response(store)


@router.post("/{employer_id}", response_model=ConversationEntry, status_code=status.HTTP_201_CREATED)
async def send_message(
    employer_id: str,
    request: SendMessageRequest,
    store: ConversationStore = Depends(get_conversation_store),
    client: MarketplaceClient = Depends(get_marketplace),
):
    await store.load(employer_id)
    try:
        applications = await client.fetch_applications()
    except MarketplaceError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Could not load candidates: {e}",
        )
    store.merge_applications(applications)

    try:
        return await store.send(request.candidate_id, request.text)
    except MessageDeliveryError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Message not sent: {e}",
        )
    except UnknownCandidateError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.get("/{employer_id}/unread", response_model=UnreadResponse)
async def get_unread(
    employer_id: str,
    store: ConversationStore = Depends(get_conversation_store),
):
    await store.load(employer_id)
    return unread_response(store)


@router.post("/{employer_id}/read/{candidate_id}", response_model=UnreadResponse)
async def mark_read(
    employer_id: str,
    candidate_id: str,
    store: ConversationStore = Depends(get_conversation_store),
):
    await store.load(employer_id)
    await store.mark_read(candidate_id)
    return unread_response(store)


@router.post("/{employer_id}/unread/{candidate_id}", response_model=UnreadResponse)
async def record_unread(
    employer_id: str,
    candidate_id: str,
    count: int = Query(1, ge=1),
    store: ConversationStore = Depends(get_conversation_store),
):
    await store.load(employer_id)
    await store.record_unread(candidate_id, count)
    return unread_response(store)
