from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from biaswatch.utils.bias_scale import NEUTRAL_SCORE, clamp_score, label

# Stored article bodies are capped once, when the insert payload is built.
STORED_CONTENT_MAX_CHARS = 5000


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class BiasedPhrase(CamelModel):
    text: str
    explanation: str = ""

    @field_validator("explanation", mode="before")
    @classmethod
    def _null_explanation(cls, value):
        return "" if value is None else value


class Topics(CamelModel):
    main: str = "General"
    related: List[str] = Field(default_factory=list)

    @field_validator("main", mode="before")
    @classmethod
    def _null_main(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return "General"
        return value

    @field_validator("related", mode="before")
    @classmethod
    def _listify(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class MultidimensionalAnalysis(CamelModel):
    bias: int = NEUTRAL_SCORE
    emotional: int = NEUTRAL_SCORE
    factual: int = NEUTRAL_SCORE
    political: int = NEUTRAL_SCORE
    neutral_language: int = NEUTRAL_SCORE

    @field_validator("bias", "emotional", "factual", "political", "neutral_language", mode="before")
    @classmethod
    def _clamp(cls, value):
        return clamp_score(value)


class ArticleCreate(CamelModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    source: Optional[str] = None
    url: Optional[str] = None
    bias_score: int = NEUTRAL_SCORE
    bias_analysis: Optional[str] = None
    neutral_text: Optional[str] = None
    biased_phrases: Optional[List[BiasedPhrase]] = None
    political_leaning: Optional[str] = None
    emotional_language: Optional[str] = None
    factual_reporting: Optional[str] = None
    topics: Optional[Topics] = None
    multidimensional_analysis: Optional[MultidimensionalAnalysis] = None

    @field_validator("bias_score", mode="before")
    @classmethod
    def _clamp_score(cls, value):
        return clamp_score(value)

    @field_validator("content")
    @classmethod
    def _cap_content(cls, value: str) -> str:
        if len(value) > STORED_CONTENT_MAX_CHARS:
            return value[:STORED_CONTENT_MAX_CHARS] + "..."
        return value


class Article(ArticleCreate):
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": 1,
                "title": "Senate passes budget resolution",
                "source": "New York Times",
                "url": "https://www.nytimes.com/2025/06/11/us/politics/budget.html",
                "content": "The Senate on Tuesday passed...",
                "biasScore": 58,
                "politicalLeaning": "Centrist",
                "analyzedAt": "2025-06-11T10:30:00Z"
            }
        },
    )

    id: int
    analyzed_at: datetime

    @computed_field(alias="biasLabel")
    @property
    def bias_label(self) -> str:
        return label(self.bias_score)


class UserCreate(CamelModel):
    username: str = Field(min_length=1)
    password: str


class User(UserCreate):
    model_config = ConfigDict(frozen=True)

    id: int


class AnalysisRequest(CamelModel):
    url: Optional[str] = None
    text: Optional[str] = None


class AnalysisResult(CamelModel):
    title: str
    content: str
    source: Optional[str] = None
    url: Optional[str] = None
    bias_score: int = NEUTRAL_SCORE
    bias_analysis: str = ""
    neutral_text: str = ""
    biased_phrases: List[BiasedPhrase] = Field(default_factory=list)
    political_leaning: str = "Centrist"
    emotional_language: str = "Moderate"
    factual_reporting: str = "Moderate"
    topics: Topics = Field(default_factory=Topics)
    multidimensional_analysis: MultidimensionalAnalysis = Field(default_factory=MultidimensionalAnalysis)

    def to_article_create(self) -> ArticleCreate:
        return ArticleCreate.model_validate(self.model_dump())


class ComparisonResult(CamelModel):
    source: str
    headline: str = ""
    bias_score: int = NEUTRAL_SCORE
    political_leaning: str = "Centrist"
    explanation: str = ""
    key_narrative: Optional[str] = None
    content_analysis: List[str] = Field(default_factory=list)
    illustrative: bool = False

    @field_validator("bias_score", mode="before")
    @classmethod
    def _clamp_score(cls, value):
        return clamp_score(value)

    @field_validator("content_analysis", mode="before")
    @classmethod
    def _listify(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

    @computed_field(alias="biasLabel")
    @property
    def bias_label(self) -> str:
        return label(self.bias_score)
