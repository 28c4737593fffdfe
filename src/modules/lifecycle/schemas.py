"""
Pydantic schemas for the order lifecycle.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.config.constants import OrderStatus, Priority, QuoteStatus
from src.modules.matching.schemas import CoordinatesSchema


class OrderCreateSchema(BaseModel):
    """Request to create an order."""
    requester_id: str = Field(..., min_length=1, description="Requester identifier")
    category: str = Field(..., min_length=1, description="Service category")
    description: str = Field(default="", description="Free-text description of the job")
    location: Optional[CoordinatesSchema] = Field(None, description="Where the job takes place")
    direct_provider_id: Optional[str] = Field(
        None, description="Book this provider directly instead of searching"
    )


class UrgentOrderCreateSchema(BaseModel):
    """Urgent intake: the category comes from triage."""
    requester_id: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    images: List[str] = Field(default_factory=list, description="Image URLs")
    location: Optional[CoordinatesSchema] = None


class TriageResultSchema(BaseModel):
    """Structured classification from the triage assistant."""
    category: str
    priority: Priority
    summary: str = ""
    safety_advice: str = ""
    estimated_price_range: str = ""


class QuoteCreateSchema(BaseModel):
    """Quote submitted by a provider."""
    provider_id: str = Field(..., min_length=1)
    price: float = Field(..., gt=0, description="Proposed price")
    description: str = Field(default="")


class ReviewInputSchema(BaseModel):
    """Review left by the requester on completion."""
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(default="")
    images: List[str] = Field(default_factory=list, description="Result image URLs")


class OrderSchema(BaseModel):
    """Active order as exposed to callers."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    requester_id: str
    category: str
    status: OrderStatus
    description: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    contacted_provider_ids: List[str] = Field(default_factory=list)
    rejected_provider_ids: List[str] = Field(default_factory=list)
    targeted_providers: List[str] = Field(default_factory=list)
    search_radius_km: float = 1.0
    is_direct: bool = False
    assigned_provider_id: Optional[str] = None
    assigned_price: Optional[float] = None
    assigned_at: Optional[datetime] = None
    finish_requested_by: Optional[str] = None
    priority: Optional[Priority] = None
    triage_summary: Optional[str] = None
    safety_advice: Optional[str] = None
    estimated_price_range: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class QuoteSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_id: str
    provider_id: str
    price: float
    description: str = ""
    status: QuoteStatus
    timestamp: datetime
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None


class ReviewSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_id: str
    provider_id: str
    requester_id: str
    rating: int
    comment: str = ""
    images: List[str] = Field(default_factory=list)
    created_at: datetime


class ArchivedOrderSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    requester_id: str
    category: str
    status: OrderStatus
    description: str = ""
    assigned_provider_id: Optional[str] = None
    assigned_price: Optional[float] = None
    contacted_provider_ids: List[str] = Field(default_factory=list)
    rejected_provider_ids: List[str] = Field(default_factory=list)
    targeted_providers: List[str] = Field(default_factory=list)
    created_at: datetime
    completed_at: datetime
    archived_at: datetime
    finish_requested_by: str
    review_id: Optional[str] = None
    result_images: List[str] = Field(default_factory=list)
    final_review: Optional[dict] = None


class ProviderStatsSchema(BaseModel):
    """Provider aggregates after archival."""
    provider_id: str
    rating: float
    reviews_count: int
    jobs_done: int
    current_active_jobs: int


class ArchiveResultSchema(BaseModel):
    archived_order: ArchivedOrderSchema
    review: Optional[ReviewSchema] = None
    provider_stats: ProviderStatsSchema
