"""
Pydantic schemas for the FoundIt API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, StrictInt


class SignupRequest(BaseModel):
    display_name: str = Field(..., max_length=128)
    email: str = Field(..., max_length=320)
    password: str
    confirm_password: str
    agree: bool = False
    role: str = "seeker"


class LoginRequest(BaseModel):
    email: str
    password: str


class ViewerResponse(BaseModel):
    user_id: str
    email: str
    role: str


class SessionResponse(BaseModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    expires_at: float
    user: ViewerResponse


class StatusResponse(BaseModel):
    status: Literal["ok"]


class ProfileResponse(BaseModel):
    id: str
    username: Optional[str] = None
    role: str
    avatar_url: Optional[str] = None
    email: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    username: str = Field(..., max_length=64)


class QuestionPayload(BaseModel):
    question: str
    options: list[str]
    correctIndex: int


class PublicQuestion(BaseModel):
    question: str
    options: list[str]


class ItemSummary(BaseModel):
    id: str
    title: str
    category: Optional[str] = None
    description: Optional[str] = None
    status: str
    image_url: Optional[str] = None
    created_at: float


class ListItemsResponse(BaseModel):
    items: list[ItemSummary]


class ItemDetailResponse(ItemSummary):
    founder_id: str
    winning_claim_id: Optional[str] = None
    has_applied: bool = False
    is_winner: bool = False
    message: Optional[str] = None


class FounderItem(ItemSummary):
    questions: Optional[list[QuestionPayload]] = None
    winning_claim_id: Optional[str] = None


class ListFounderItemsResponse(BaseModel):
    items: list[FounderItem]


class ApplyViewResponse(BaseModel):
    id: str
    title: str
    status: str
    questions: list[PublicQuestion]


class ClaimRequest(BaseModel):
    answers: list[Optional[StrictInt]]


class ClaimResponse(BaseModel):
    id: str
    item_id: str
    seeker_id: str
    answers: list[Optional[int]]
    is_winner: bool
    created_at: float


class SeekerProfile(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None


class ApplicantResponse(ClaimResponse):
    correct: int
    total: int
    seeker_profile: Optional[SeekerProfile] = None


class ApplicantsResponse(BaseModel):
    item: FounderItem
    min_correct: int
    applicants: list[ApplicantResponse]


class SelectWinnerRequest(BaseModel):
    claim_id: str


class MyClaimResponse(BaseModel):
    id: str
    item_id: str
    created_at: float
    is_winner: bool
    status: Literal["winner", "not_selected", "pending"]
    item: Optional[ItemSummary] = None


class ListMyClaimsResponse(BaseModel):
    claims: list[MyClaimResponse]
