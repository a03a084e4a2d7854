"""Brand-asset bundle returned by extraction."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.jobs.models import utcnow


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LogoType(str, Enum):
    HEADER = "header"
    FOOTER = "footer"
    FAVICON = "favicon"
    OTHER = "other"


class FontSource(str, Enum):
    GOOGLE = "google"
    SELF_HOSTED = "self-hosted"
    SYSTEM = "system"
    OTHER = "other"


class LogoAsset(_CamelModel):
    type: LogoType
    src: str
    alt: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    filename: str
    local_path: str


class ColorPalette(_CamelModel):
    primary: List[str] = Field(default_factory=list)
    secondary: List[str] = Field(default_factory=list)
    background: List[str] = Field(default_factory=list)
    text: List[str] = Field(default_factory=list)
    accent: List[str] = Field(default_factory=list)
    all: List[str] = Field(default_factory=list)


class FontAsset(_CamelModel):
    family: str
    weight: Optional[str] = None
    style: Optional[str] = None
    source: FontSource
    url: Optional[str] = None
    filename: Optional[str] = None


class LayoutRegion(_CamelModel):
    """Reference to the element found for one page region."""
    tag: str
    id: Optional[str] = None
    classes: List[str] = Field(default_factory=list)
    selector: str


class LayoutStructure(_CamelModel):
    header: Optional[LayoutRegion] = None
    footer: Optional[LayoutRegion] = None
    navigation: Optional[LayoutRegion] = None
    main_content: Optional[LayoutRegion] = None
    sidebar: Optional[LayoutRegion] = None


class SiteMetadata(_CamelModel):
    title: str = ""
    description: Optional[str] = None
    keywords: Optional[List[str]] = None
    viewport: Optional[str] = None
    theme_color: Optional[str] = None


class BrandAssets(_CamelModel):
    logos: List[LogoAsset] = Field(default_factory=list)
    colors: ColorPalette = Field(default_factory=ColorPalette, alias="colours")
    fonts: List[FontAsset] = Field(default_factory=list)
    layout: LayoutStructure = Field(default_factory=LayoutStructure)
    metadata: SiteMetadata = Field(default_factory=SiteMetadata)
    extracted_at: datetime = Field(default_factory=utcnow)

    def to_response(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
