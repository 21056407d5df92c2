from pydantic import BaseModel, Field


class IngestRequest(BaseModel):
    input_path: str | None = None


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=5, gt=0, le=100)
    score_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    category: str | None = None
    include_reasoning: bool = True
