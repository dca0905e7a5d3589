"""Pydantic models for API requests."""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


def _strip_sku(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("SKU must not be blank")
    return value


class MigrationOptionsModel(BaseModel):
    target_instances: Optional[List[str]] = None  # None = every configured instance
    include_images: Optional[bool] = None
    product_enabled: Optional[bool] = None
    continue_on_error: Optional[bool] = None


class MigrationRequest(BaseModel):
    sku: str = Field(..., min_length=1)
    options: MigrationOptionsModel = Field(default_factory=MigrationOptionsModel)

    @field_validator("sku")
    @classmethod
    def strip_sku(cls, value: str) -> str:
        return _strip_sku(value)


class BatchMigrationRequest(BaseModel):
    skus: List[str] = Field(..., min_length=1)
    options: MigrationOptionsModel = Field(default_factory=MigrationOptionsModel)


class PriceSyncOptionsModel(BaseModel):
    target_instances: Optional[List[str]] = None
    continue_on_error: Optional[bool] = None


class PriceSyncRequest(BaseModel):
    sku: str = Field(..., min_length=1)
    options: PriceSyncOptionsModel = Field(default_factory=PriceSyncOptionsModel)

    @field_validator("sku")
    @classmethod
    def strip_sku(cls, value: str) -> str:
        return _strip_sku(value)
