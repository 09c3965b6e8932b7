"""
Conversation endpoints: saving a finished session and reading transcripts
back. Every route here requires the access header.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status

from ..history.models import ConversationRecord
from ..history.repositories.sql_repo import AsyncSqlRepo
from ..logging_utils import operation_context
from .dependencies import get_repository, require_access
from .schemas import SaveConversationRequest, SaveConversationResponse

router = APIRouter(tags=["conversations"], dependencies=[Depends(require_access)])


@router.post(
    "/save_conversation_session",
    response_model=SaveConversationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def save_conversation_session(
    request: SaveConversationRequest,
    repo: AsyncSqlRepo = Depends(get_repository),
) -> SaveConversationResponse:
    """
    Store every message of a session atomically.

    Messages with empty content are skipped; if nothing is left the request is
    rejected with 400. A storage failure rolls the whole batch back (500).
    """
    async with operation_context(
        "save_conversation_session",
        user_id=request.userId,
        session_id=request.conversationId,
        message_count=len(request.messages),
    ) as save_logger:
        saved = await repo.save_conversation_batch(
            request.userId, request.conversationId, request.messages
        )
        save_logger.info("Conversation batch stored", saved=saved)
    return SaveConversationResponse(
        message="Conversation session saved successfully.", saved=saved
    )


@router.get(
    "/api/conversations-by-filters",
    response_model=list[ConversationRecord],
)
async def conversations_by_filters(
    user_id: int | None = Query(None, alias="userId"),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    repo: AsyncSqlRepo = Depends(get_repository),
) -> list[ConversationRecord]:
    """Rows joined with user names, newest first; dates are inclusive days."""
    return await repo.list_conversations_by_filters(
        user_id=user_id, start_date=start_date, end_date=end_date
    )


@router.get(
    "/api/conversations/{user_id}",
    response_model=list[ConversationRecord],
)
async def conversations_by_user(
    user_id: int,
    repo: AsyncSqlRepo = Depends(get_repository),
) -> list[ConversationRecord]:
    return await repo.list_conversations_by_user(user_id)
