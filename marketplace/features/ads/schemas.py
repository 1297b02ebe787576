from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

AdStatus = Literal["active", "sold", "inactive"]
Condition = Literal["new", "like_new", "good", "fair", "poor"]


class SortMode(str, Enum):
    relevance = "relevance"
    price_asc = "price-asc"
    price_desc = "price-desc"
    newest = "newest"
    oldest = "oldest"


class AdFields(BaseModel):
    """Optional listing attributes shared by create and update."""

    image: Optional[str] = None
    images: Optional[List[str]] = None
    location: Optional[str] = None
    seller: Optional[str] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    is_favorite: Optional[bool] = None
    condition: Optional[Condition] = None
    contact_info: Optional[Dict[str, Any]] = None


class AdCreate(AdFields):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=1000)
    price: float = Field(ge=0)


class AdUpdate(AdFields):
    # user_id and id are not declared and therefore can never be written
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    price: Optional[float] = Field(default=None, ge=0)
    status: Optional[AdStatus] = None


class Ad(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    title: str
    description: str
    price: float
    image: Optional[str] = None
    images: Optional[List[str]] = None
    location: Optional[str] = None
    seller: Optional[str] = None
    rating: Optional[float] = None
    is_favorite: Optional[bool] = None
    condition: Optional[str] = None
    contact_info: Optional[Dict[str, Any]] = None
    status: AdStatus = "active"
    user_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    profiles: Optional[Dict[str, Any]] = None


class AdPage(BaseModel):
    ads: List[Ad]
    total: int
    page: int
    limit: int
