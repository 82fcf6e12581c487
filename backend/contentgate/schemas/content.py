"""Pydantic schemas for content access"""
from typing import Literal, Optional, Union

from pydantic import BaseModel


class ContentAccessRequest(BaseModel):
    """Mint request body"""
    productFileId: Optional[Union[int, str]] = None


class DocumentAccessResponse(BaseModel):
    success: Literal[True] = True
    contentType: Literal["document"] = "document"
    accessUrl: str
    fileName: str
    expiresAt: str


class VideoAccessResponse(BaseModel):
    success: Literal[True] = True
    contentType: Literal["video"] = "video"
    accessUrl: str
    embedUrl: str
    videoId: str
    title: str
    expiresAt: str


class ContentNotConfiguredResponse(BaseModel):
    """Returned with 200 when the catalog record has no usable link"""
    success: Literal[False] = False
    error: str


class ErrorResponse(BaseModel):
    error: str


ContentAccessResponse = Union[DocumentAccessResponse, VideoAccessResponse, ContentNotConfiguredResponse]
