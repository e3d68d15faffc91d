from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from app.core.exceptions import TokenError
from app.integrations.google.calendar import CalendarService
from app.integrations.google.drive import DriveService
from app.integrations.google.gmail import EmailThread, GmailService, ParsedEmail
from app.integrations.google.token_service import GoogleTokenService
from app.repositories.google_token_repository import GoogleTokenRepository
from app.schemas.common import SuccessResponse
from app.schemas.google import (
    CreateEventRequest,
    CreateFolderRequest,
    GoogleConnectRequest,
    RenameFileRequest,
    SendEmailRequest,
    TokenStatus,
    UpdateEventRequest,
)
from app.api.deps import (
    get_calendar_service,
    get_drive_service,
    get_gmail_service,
    get_google_token_repo,
    get_google_token_service,
    require_user_id,
)

router = APIRouter(prefix="/google", tags=["Google"])


# --- Connection ---


@router.post("/connection", response_model=SuccessResponse)
async def connect_google(
    body: GoogleConnectRequest,
    user_id: UUID = Depends(require_user_id),
    token_repo: GoogleTokenRepository = Depends(get_google_token_repo),
) -> SuccessResponse:
    """Store the tokens obtained by the OAuth sign-in flow."""
    now = datetime.now(timezone.utc)
    await token_repo.save_tokens(
        user_id,
        access_token=body.access_token,
        refresh_token=body.refresh_token,
        expires_at=now + timedelta(seconds=body.expires_in),
        scopes=body.scopes,
        token_type=body.token_type,
    )
    await token_repo.commit()
    return SuccessResponse()


@router.delete("/connection", status_code=204)
async def disconnect_google(
    user_id: UUID = Depends(require_user_id),
    token_repo: GoogleTokenRepository = Depends(get_google_token_repo),
) -> None:
    await token_repo.delete_for_user(user_id)
    await token_repo.commit()


@router.get("/status", response_model=TokenStatus)
async def connection_status(
    tokens: GoogleTokenService = Depends(get_google_token_service),
) -> TokenStatus:
    """Whether a usable access token can be obtained (refreshing if needed)."""
    try:
        await tokens.get_access_token()
    except TokenError:
        return TokenStatus(connected=False)
    return TokenStatus(
        connected=True,
        expires_at=tokens.get_token_expiry_time(),
        expiring_soon=tokens.is_token_expiring_soon(),
    )


# --- Gmail ---


@router.get("/gmail/threads")
async def list_threads(
    q: Optional[str] = Query(None, description="Gmail search query"),
    max_results: int = Query(20, ge=1, le=100),
    page_token: Optional[str] = Query(None),
    gmail: GmailService = Depends(get_gmail_service),
) -> Dict[str, Any]:
    return await gmail.list_threads(query=q, max_results=max_results, page_token=page_token)


@router.get("/gmail/threads/{thread_id}")
async def get_thread(
    thread_id: str,
    gmail: GmailService = Depends(get_gmail_service),
) -> EmailThread:
    return await gmail.get_thread(thread_id)


@router.get("/gmail/messages/{message_id}")
async def get_message(
    message_id: str,
    gmail: GmailService = Depends(get_gmail_service),
) -> ParsedEmail:
    return await gmail.get_message(message_id)


@router.get("/gmail/contact")
async def emails_for_contact(
    email: str = Query(..., min_length=3),
    max_results: int = Query(20, ge=1, le=100),
    gmail: GmailService = Depends(get_gmail_service),
) -> Dict[str, Any]:
    """Threads sent to or received from one address."""
    return await gmail.get_emails_for_contact(email, max_results=max_results)


@router.post("/gmail/send")
async def send_email(
    body: SendEmailRequest,
    gmail: GmailService = Depends(get_gmail_service),
) -> Dict[str, Any]:
    return await gmail.send(
        to=body.to,
        subject=body.subject,
        body=body.body,
        html=body.html,
        cc=body.cc,
        bcc=body.bcc,
        thread_id=body.thread_id,
        reply_to_message_id=body.reply_to_message_id,
    )


@router.post("/gmail/messages/{message_id}/read")
async def mark_read(message_id: str, gmail: GmailService = Depends(get_gmail_service)) -> Any:
    return await gmail.mark_as_read(message_id)


@router.post("/gmail/messages/{message_id}/unread")
async def mark_unread(message_id: str, gmail: GmailService = Depends(get_gmail_service)) -> Any:
    return await gmail.mark_as_unread(message_id)


@router.post("/gmail/messages/{message_id}/archive")
async def archive(message_id: str, gmail: GmailService = Depends(get_gmail_service)) -> Any:
    return await gmail.archive(message_id)


# --- Calendar ---


@router.get("/calendar/events")
async def list_events(
    time_min: Optional[datetime] = Query(None),
    time_max: Optional[datetime] = Query(None),
    q: Optional[str] = Query(None),
    max_results: int = Query(50, ge=1, le=250),
    page_token: Optional[str] = Query(None),
    calendar: CalendarService = Depends(get_calendar_service),
) -> Dict[str, Any]:
    return await calendar.list_events(
        time_min=time_min,
        time_max=time_max,
        max_results=max_results,
        query=q,
        page_token=page_token,
    )


@router.get("/calendar/upcoming")
async def upcoming_events(
    days: int = Query(7, ge=1, le=90),
    max_results: int = Query(10, ge=1, le=250),
    calendar: CalendarService = Depends(get_calendar_service),
) -> List[Dict[str, Any]]:
    return await calendar.get_upcoming_events(days=days, max_results=max_results)


@router.get("/calendar/range")
async def events_for_range(
    start: date = Query(...),
    end: date = Query(...),
    calendar: CalendarService = Depends(get_calendar_service),
) -> List[Dict[str, Any]]:
    return await calendar.get_events_for_date_range(start, end)


@router.get("/calendar/events/{event_id}")
async def get_event(
    event_id: str,
    calendar: CalendarService = Depends(get_calendar_service),
) -> Dict[str, Any]:
    return await calendar.get_event(event_id)


@router.post("/calendar/events", status_code=201)
async def create_event(
    body: CreateEventRequest,
    calendar: CalendarService = Depends(get_calendar_service),
) -> Dict[str, Any]:
    event = body.model_dump(exclude={"add_meet"})
    return await calendar.create_event(add_meet=body.add_meet, **event)


@router.post("/calendar/quick-add", status_code=201)
async def quick_add_event(
    text: str = Query(..., min_length=1),
    calendar: CalendarService = Depends(get_calendar_service),
) -> Dict[str, Any]:
    return await calendar.quick_add(text)


@router.patch("/calendar/events/{event_id}")
async def update_event(
    event_id: str,
    body: UpdateEventRequest,
    calendar: CalendarService = Depends(get_calendar_service),
) -> Dict[str, Any]:
    return await calendar.update_event(event_id, body.changes)


@router.delete("/calendar/events/{event_id}", status_code=204)
async def delete_event(
    event_id: str,
    calendar: CalendarService = Depends(get_calendar_service),
) -> None:
    await calendar.delete_event(event_id)


# --- Drive ---


@router.get("/drive/files")
async def list_files(
    folder_id: Optional[str] = Query(None),
    page_size: int = Query(50, ge=1, le=1000),
    page_token: Optional[str] = Query(None),
    drive: DriveService = Depends(get_drive_service),
) -> Dict[str, Any]:
    return await drive.list_files(folder_id=folder_id, page_size=page_size, page_token=page_token)


@router.get("/drive/recent")
async def recent_files(
    page_size: int = Query(20, ge=1, le=100),
    drive: DriveService = Depends(get_drive_service),
) -> List[Dict[str, Any]]:
    return await drive.get_recent_files(page_size=page_size)


@router.get("/drive/search")
async def search_files(
    q: str = Query(..., min_length=1),
    drive: DriveService = Depends(get_drive_service),
) -> List[Dict[str, Any]]:
    return await drive.search(q)


@router.get("/drive/files/{file_id}")
async def get_file(file_id: str, drive: DriveService = Depends(get_drive_service)) -> Dict[str, Any]:
    return await drive.get_file(file_id)


@router.post("/drive/folders", status_code=201)
async def create_folder(
    body: CreateFolderRequest,
    drive: DriveService = Depends(get_drive_service),
) -> Dict[str, Any]:
    return await drive.create_folder(body.name, parent_id=body.parent_id)


@router.post("/drive/files", status_code=201)
async def upload_file(
    file: UploadFile = File(...),
    parent_id: Optional[str] = Form(None),
    drive: DriveService = Depends(get_drive_service),
) -> Dict[str, Any]:
    data = await file.read()
    return await drive.upload_file(
        file.filename or "upload",
        data,
        file.content_type or "application/octet-stream",
        parent_id=parent_id,
    )


@router.patch("/drive/files/{file_id}")
async def rename_file(
    file_id: str,
    body: RenameFileRequest,
    drive: DriveService = Depends(get_drive_service),
) -> Dict[str, Any]:
    return await drive.rename(file_id, body.name)


@router.post("/drive/files/{file_id}/move")
async def move_file(
    file_id: str,
    new_parent_id: str = Query(...),
    old_parent_id: Optional[str] = Query(None),
    drive: DriveService = Depends(get_drive_service),
) -> Dict[str, Any]:
    return await drive.move(file_id, new_parent_id, old_parent_id)


@router.post("/drive/files/{file_id}/star")
async def star_file(
    file_id: str,
    starred: bool = Query(True),
    drive: DriveService = Depends(get_drive_service),
) -> Dict[str, Any]:
    return await drive.star(file_id, starred)


@router.post("/drive/files/{file_id}/trash")
async def trash_file(file_id: str, drive: DriveService = Depends(get_drive_service)) -> Dict[str, Any]:
    return await drive.trash(file_id)


@router.delete("/drive/files/{file_id}", status_code=204)
async def delete_file(file_id: str, drive: DriveService = Depends(get_drive_service)) -> None:
    await drive.delete(file_id)
