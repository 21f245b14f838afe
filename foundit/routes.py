"""
HTTP routes for the FoundIt API.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from foundit import claims as claim_ops
from foundit import items as item_ops
from foundit import profiles as profile_ops
from foundit.auth import IdentityProvider, Viewer
from foundit.claims import Applicant, SeekerClaim
from foundit.config import Settings, get_settings
from foundit.db import DbClient, ItemRecord, ProfileRecord
from foundit.dependencies import (
    get_bearer_token,
    get_current_viewer,
    get_db_client,
    get_identity_provider,
    get_optional_viewer,
    get_storage_client,
)
from foundit.errors import ValidationFailed
from foundit.images import ImageUpload
from foundit.schemas import (
    ApplicantResponse,
    ApplicantsResponse,
    ApplyViewResponse,
    ClaimRequest,
    ClaimResponse,
    FounderItem,
    ItemDetailResponse,
    ItemSummary,
    ListFounderItemsResponse,
    ListItemsResponse,
    ListMyClaimsResponse,
    LoginRequest,
    MyClaimResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    PublicQuestion,
    QuestionPayload,
    SeekerProfile,
    SelectWinnerRequest,
    SessionResponse,
    SignupRequest,
    StatusResponse,
    ViewerResponse,
)
from foundit.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_upload(file: UploadFile | None) -> Optional[ImageUpload]:
    if file is None or not file.filename:
        return None
    data = await file.read()
    return ImageUpload(
        filename=file.filename, content_type=file.content_type, data=data
    )


def _item_summary(item: ItemRecord) -> ItemSummary:
    return ItemSummary(
        id=item.id,
        title=item.title,
        category=item.category,
        description=item.description,
        status=item.status,
        image_url=item.image_url,
        created_at=item.created_at,
    )


def _founder_item(item: ItemRecord) -> FounderItem:
    questions = None
    if item.questions is not None:
        questions = [QuestionPayload(**q.as_dict()) for q in item.questions]
    return FounderItem(
        **_item_summary(item).model_dump(),
        questions=questions,
        winning_claim_id=item.winning_claim_id,
    )


def _profile_response(profile: ProfileRecord, viewer: Viewer) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        username=profile.username,
        role=profile.role,
        avatar_url=profile.avatar_url,
        email=viewer.email or profile.email,
    )


def _applicant_response(applicant: Applicant) -> ApplicantResponse:
    claim = applicant.claim
    profile = applicant.profile
    return ApplicantResponse(
        id=claim.id,
        item_id=claim.item_id,
        seeker_id=claim.seeker_id,
        answers=claim.answers,
        is_winner=claim.is_winner,
        created_at=claim.created_at,
        correct=applicant.score.correct,
        total=applicant.score.total,
        seeker_profile=SeekerProfile(
            username=profile.username,
            email=profile.email,
            avatar_url=profile.avatar_url,
        )
        if profile
        else None,
    )


def _my_claim_response(entry: SeekerClaim) -> MyClaimResponse:
    return MyClaimResponse(
        id=entry.claim.id,
        item_id=entry.claim.item_id,
        created_at=entry.claim.created_at,
        is_winner=entry.claim.is_winner,
        status=entry.status,
        item=_item_summary(entry.item) if entry.item else None,
    )


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=ProfileResponse, status_code=201)
def signup(
    payload: SignupRequest,
    identity: IdentityProvider = Depends(get_identity_provider),
):
    profile = identity.sign_up(
        display_name=payload.display_name,
        email=payload.email,
        password=payload.password,
        confirm_password=payload.confirm_password,
        agree=payload.agree,
        role=payload.role,
    )
    return ProfileResponse(**profile.as_dict())


@router.post("/auth/login", response_model=SessionResponse)
def login(
    payload: LoginRequest,
    identity: IdentityProvider = Depends(get_identity_provider),
):
    issued = identity.sign_in(payload.email, payload.password)
    return SessionResponse(
        access_token=issued.access_token,
        expires_at=issued.expires_at,
        user=ViewerResponse(
            user_id=issued.viewer.user_id,
            email=issued.viewer.email,
            role=issued.viewer.role,
        ),
    )


@router.post("/auth/logout", response_model=StatusResponse)
def logout(
    token: str = Depends(get_bearer_token),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    identity.sign_out(token)
    return StatusResponse(status="ok")


@router.get("/auth/session", response_model=ViewerResponse)
def current_session(viewer: Viewer = Depends(get_current_viewer)):
    return ViewerResponse(user_id=viewer.user_id, email=viewer.email, role=viewer.role)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.get("/profile", response_model=ProfileResponse)
def read_profile(
    viewer: Viewer = Depends(get_current_viewer),
    db: DbClient = Depends(get_db_client),
):
    return _profile_response(profile_ops.get_profile(db, viewer), viewer)


@router.patch("/profile", response_model=ProfileResponse)
def update_profile(
    payload: ProfileUpdateRequest,
    viewer: Viewer = Depends(get_current_viewer),
    db: DbClient = Depends(get_db_client),
):
    profile = profile_ops.update_username(db, viewer, payload.username)
    return _profile_response(profile, viewer)


@router.post("/profile/avatar", response_model=ProfileResponse)
async def upload_avatar(
    file: UploadFile = File(...),
    viewer: Viewer = Depends(get_current_viewer),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    image = await _read_upload(file)
    if image is None:
        raise ValidationFailed("Please select an image first.")
    profile = profile_ops.upload_avatar(db, storage, settings, viewer, image)
    return _profile_response(profile, viewer)


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


@router.get("/items", response_model=ListItemsResponse)
def list_items(
    viewer: Viewer = Depends(get_current_viewer),
    db: DbClient = Depends(get_db_client),
):
    items = item_ops.browse_items(db, viewer)
    return ListItemsResponse(items=[_item_summary(item) for item in items])


@router.post("/items", response_model=FounderItem, status_code=201)
async def post_item(
    title: str | None = Form(None),
    category: str | None = Form(None),
    description: str | None = Form(None),
    questions: str = Form(...),
    image: UploadFile | None = File(None),
    viewer: Viewer = Depends(get_current_viewer),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    item = item_ops.post_item(
        db,
        storage,
        settings,
        viewer,
        title=title,
        category=category,
        description=description,
        questions=item_ops.parse_questions(questions),
        image=await _read_upload(image),
    )
    return _founder_item(item)


@router.get("/items/{item_id}", response_model=ItemDetailResponse)
def item_detail(
    item_id: str,
    viewer: Optional[Viewer] = Depends(get_optional_viewer),
    db: DbClient = Depends(get_db_client),
):
    detail = item_ops.get_item_detail(db, item_id, viewer)
    return ItemDetailResponse(
        **_item_summary(detail.item).model_dump(),
        founder_id=detail.item.founder_id,
        winning_claim_id=detail.item.winning_claim_id,
        has_applied=detail.has_applied,
        is_winner=detail.is_winner,
        message=detail.message,
    )


@router.patch("/items/{item_id}", response_model=FounderItem)
async def edit_item(
    item_id: str,
    title: str | None = Form(None),
    category: str | None = Form(None),
    description: str | None = Form(None),
    questions: str = Form(...),
    image: UploadFile | None = File(None),
    viewer: Viewer = Depends(get_current_viewer),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    item = item_ops.edit_item(
        db,
        storage,
        settings,
        viewer,
        item_id,
        title=title,
        category=category,
        description=description,
        questions=item_ops.parse_questions(questions),
        image=await _read_upload(image),
    )
    return _founder_item(item)


@router.get("/items/{item_id}/apply", response_model=ApplyViewResponse)
def apply_view(
    item_id: str,
    viewer: Viewer = Depends(get_current_viewer),
    db: DbClient = Depends(get_db_client),
):
    item = item_ops.get_apply_view(db, viewer, item_id)
    return ApplyViewResponse(
        id=item.id,
        title=item.title,
        status=item.status,
        questions=[
            PublicQuestion(question=q.question, options=q.options)
            for q in item.questions or []
        ],
    )


@router.post("/items/{item_id}/claims", response_model=ClaimResponse, status_code=201)
def submit_claim(
    item_id: str,
    payload: ClaimRequest,
    viewer: Viewer = Depends(get_current_viewer),
    db: DbClient = Depends(get_db_client),
):
    claim = claim_ops.submit_claim(db, viewer, item_id, payload.answers)
    return ClaimResponse(
        id=claim.id,
        item_id=claim.item_id,
        seeker_id=claim.seeker_id,
        answers=claim.answers,
        is_winner=claim.is_winner,
        created_at=claim.created_at,
    )


@router.get("/my-claims", response_model=ListMyClaimsResponse)
def my_claims(
    viewer: Viewer = Depends(get_current_viewer),
    db: DbClient = Depends(get_db_client),
):
    entries = claim_ops.list_seeker_claims(db, viewer)
    return ListMyClaimsResponse(claims=[_my_claim_response(e) for e in entries])


# ---------------------------------------------------------------------------
# Founder dashboard
# ---------------------------------------------------------------------------


@router.get("/dashboard/items", response_model=ListFounderItemsResponse)
def dashboard_items(
    viewer: Viewer = Depends(get_current_viewer),
    db: DbClient = Depends(get_db_client),
):
    items = item_ops.list_founder_items(db, viewer)
    return ListFounderItemsResponse(items=[_founder_item(item) for item in items])


@router.get(
    "/dashboard/items/{item_id}/applicants", response_model=ApplicantsResponse
)
def dashboard_applicants(
    item_id: str,
    min_correct: int = Query(0, ge=0, le=3),
    viewer: Viewer = Depends(get_current_viewer),
    db: DbClient = Depends(get_db_client),
):
    item, applicants = claim_ops.list_applicants(db, viewer, item_id, min_correct)
    return ApplicantsResponse(
        item=_founder_item(item),
        min_correct=min_correct,
        applicants=[_applicant_response(a) for a in applicants],
    )


@router.post("/dashboard/items/{item_id}/winner", response_model=FounderItem)
def select_winner(
    item_id: str,
    payload: SelectWinnerRequest,
    viewer: Viewer = Depends(get_current_viewer),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    item = claim_ops.select_winner(
        db,
        viewer,
        item_id,
        payload.claim_id,
        atomic=settings.atomic_winner_selection,
    )
    return _founder_item(item)
