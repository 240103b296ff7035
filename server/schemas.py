from pydantic import BaseModel, Field


class CategoryRef(BaseModel):
    id: str
    name: str


class CategorizeRequest(BaseModel):
    transcript: str = ""
    defaultDurationMinutes: int = 30
    categories: list[CategoryRef] = []


class CreateEntryRequest(BaseModel):
    recorded_at: int | None = None
    duration: int = Field(0, ge=0)
    transcript: str | None = None
    summary: str | None = None
    category_id: str | None = None
    tags: list[str] = []


class UpdateEntryRequest(BaseModel):
    transcript: str | None = None
    summary: str | None = None
    category_id: str | None = None
    tags: list[str] | None = None
    duration: int | None = Field(None, ge=0)
    processed: bool | None = None


class CreateCategoryRequest(BaseModel):
    name: str = Field(..., min_length=1)
    color: str | None = None
    icon: str | None = None


class UpdateCategoryRequest(BaseModel):
    name: str | None = Field(None, min_length=1)
    color: str | None = None
    icon: str | None = None


class UpdateSettingsRequest(BaseModel):
    notification_interval: int | None = Field(None, ge=1)
    notification_enabled: bool | None = None
    notification_start_hour: int | None = Field(None, ge=0, le=23)
    notification_end_hour: int | None = Field(None, ge=0, le=23)
    api_key: str | None = None
    max_recording_duration: int | None = Field(None, ge=1)
