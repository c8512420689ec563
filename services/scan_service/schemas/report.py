from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Screenshot(CamelModel):
    label: str
    image: str


class CheckerResult(CamelModel):
    score: int
    issues: List[str] = Field(default_factory=list)

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, v):
        return max(0, min(100, int(round(v))))


# --- SEO ---------------------------------------------------------------------

class TextMetric(CamelModel):
    value: Optional[str] = None
    length: int = 0
    status: str


class SEOResult(CheckerResult):
    title: TextMetric
    meta_description: TextMetric
    canonical: Optional[str] = None
    og_tags: Dict[str, str] = Field(default_factory=dict)
    robots: Optional[str] = None
    language: Optional[str] = None
    favicon: Optional[str] = None
    viewport: Optional[str] = None


# --- Headings ----------------------------------------------------------------

class Heading(CamelModel):
    tag: str
    text: str
    level: int


class HeadingResult(CheckerResult):
    structure: List[Heading] = Field(default_factory=list)
    h1_count: int = 0


# --- Images ------------------------------------------------------------------

class ImageDetail(CamelModel):
    src: str
    alt: Optional[str] = None
    has_alt: bool
    status: Literal["ok", "broken"]
    width: int = 0
    height: int = 0
    loading: str = "eager"


class ImageResult(CheckerResult):
    total: int = 0
    with_alt: int = 0
    without_alt: int = 0
    broken: int = 0
    lazy_loaded: int = 0
    details: List[ImageDetail] = Field(default_factory=list)
    screenshots: List[Screenshot] = Field(default_factory=list)


# --- Links -------------------------------------------------------------------

class LinkItem(CamelModel):
    href: str
    text: str = ""


class ElementSnippet(CamelModel):
    tag: str
    html: str


class DeadLink(CamelModel):
    url: str
    status: int


class LinkDetails(CamelModel):
    internal: List[LinkItem] = Field(default_factory=list)
    external: List[LinkItem] = Field(default_factory=list)
    buttons_no_label: List[ElementSnippet] = Field(default_factory=list)


class LinkResult(CheckerResult):
    total: int = 0
    internal: int = 0
    external: int = 0
    dead_links: List[DeadLink] = Field(default_factory=list)
    buttons_without_labels: int = 0
    screenshots: List[Screenshot] = Field(default_factory=list)
    details: LinkDetails = Field(default_factory=LinkDetails)


# --- Visual / contrast ---------------------------------------------------------

class ContrastFailure(CamelModel):
    element: str
    text: str
    fg: str
    bg: str
    ratio: float
    required: float


class ContrastSummary(CamelModel):
    score: int
    rating: Literal["AAA", "AA", "A", "Fail"]
    total_checked: int = 0
    pass_aa: int = Field(default=0, alias="passAA")
    fail_aa: int = Field(default=0, alias="failAA")
    pass_aaa: int = Field(default=0, alias="passAAA")
    fail_aaa: int = Field(default=0, alias="failAAA")
    failures: List[ContrastFailure] = Field(default_factory=list)


class VisualResult(CheckerResult):
    contrast: ContrastSummary
    fonts: List[str] = Field(default_factory=list)
    font_sizes: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    background_colors: List[str] = Field(default_factory=list)


# --- Performance -----------------------------------------------------------------

class PerformanceMetric(CamelModel):
    score: int
    rating: Literal["AAA", "AA", "A", "Fail"]
    details: List[str] = Field(default_factory=list)


class PerformanceMetrics(CamelModel):
    page_weight: PerformanceMetric
    resource_count: PerformanceMetric
    dom_complexity: PerformanceMetric
    image_optimization: PerformanceMetric
    load_speed: PerformanceMetric


class ResourceBreakdown(CamelModel):
    type: str
    count: int
    size: str
    size_bytes: int


class Recommendation(CamelModel):
    priority: Literal["High", "Medium", "Low"]
    category: str
    message: str


class PerformanceResult(CheckerResult):
    load_time: int
    total_resources: int
    total_page_size: str
    total_page_size_bytes: int
    dom_elements: int
    resource_breakdown: List[ResourceBreakdown] = Field(default_factory=list)
    metrics: PerformanceMetrics
    recommendations: List[Recommendation] = Field(default_factory=list)


# --- Accessibility -------------------------------------------------------------

class ImageWithoutAlt(CamelModel):
    src: str
    width: int = 0
    height: int = 0
    screenshot: Optional[str] = None


class LinkWithoutText(CamelModel):
    href: str
    html: str
    screenshot: Optional[str] = None


class ButtonWithoutLabel(CamelModel):
    tag: str
    html: str
    screenshot: Optional[str] = None


class InputWithoutLabel(CamelModel):
    tag: str
    type: str = "text"
    name: str = ""
    id: str = ""
    screenshot: Optional[str] = None


class AccessibilityDetails(CamelModel):
    images_no_alt: List[ImageWithoutAlt] = Field(default_factory=list)
    links_no_text: List[LinkWithoutText] = Field(default_factory=list)
    buttons_no_label: List[ButtonWithoutLabel] = Field(default_factory=list)
    inputs_no_label: List[InputWithoutLabel] = Field(default_factory=list)
    category_screenshots: Dict[str, Optional[str]] = Field(default_factory=dict)


class AccessibilityResult(CheckerResult):
    images_without_alt: int = 0
    links_without_text: int = 0
    buttons_without_labels: int = 0
    inputs_without_labels: int = 0
    aria_usage: int = 0
    screenshots: List[Screenshot] = Field(default_factory=list)
    details: AccessibilityDetails = Field(default_factory=AccessibilityDetails)


# --- Responsive ------------------------------------------------------------------

class ElementConsistency(CamelModel):
    desktop_visible: int = 0
    mobile_visible: int = 0
    hidden_on_mobile: int = 0


class TapTargetElement(CamelModel):
    html: str
    width: int
    height: int
    x: int
    y: int


class TapTargets(CamelModel):
    issues: int = 0
    total: int = 0
    elements: List[TapTargetElement] = Field(default_factory=list)


class ResponsiveResult(CheckerResult):
    is_responsive: bool
    has_viewport_meta: bool
    horizontal_scroll_mobile: bool
    mobile_screenshot: Optional[str] = None
    element_consistency: ElementConsistency = Field(default_factory=ElementConsistency)
    tap_targets: TapTargets = Field(default_factory=TapTargets)


# --- Security --------------------------------------------------------------------

class HeaderCheck(CamelModel):
    present: bool = False
    value: Optional[str] = None


class SecurityHeaders(CamelModel):
    hsts: HeaderCheck = Field(default_factory=HeaderCheck)
    csp: HeaderCheck = Field(default_factory=HeaderCheck)
    x_frame_options: HeaderCheck = Field(default_factory=HeaderCheck)
    x_content_type_options: HeaderCheck = Field(default_factory=HeaderCheck)
    referrer_policy: HeaderCheck = Field(default_factory=HeaderCheck)
    permissions_policy: HeaderCheck = Field(default_factory=HeaderCheck)


class MixedContent(CamelModel):
    count: int = 0
    items: List[str] = Field(default_factory=list)


class CookieIssue(CamelModel):
    name: str
    missing_secure: bool
    missing_http_only: bool


class SecurityRecommendation(CamelModel):
    priority: Literal["Critical", "High", "Medium", "Low"]
    check: str
    message: str


class SecurityResult(CheckerResult):
    is_https: bool
    headers: SecurityHeaders = Field(default_factory=SecurityHeaders)
    mixed_content: MixedContent = Field(default_factory=MixedContent)
    dangerous_inline_scripts: int = 0
    cookie_issues: List[CookieIssue] = Field(default_factory=list)
    recommendations: List[SecurityRecommendation] = Field(default_factory=list)


# --- Tech stack / sitemap (unscored) ---------------------------------------------

class TechItem(CamelModel):
    name: str
    category: str
    confidence: Literal["high", "medium", "low"]
    version: Optional[str] = None
    icon: Optional[str] = None


class ServerInfo(CamelModel):
    server: Optional[str] = None
    powered_by: Optional[str] = None


class TechStackResult(CamelModel):
    detected: List[TechItem] = Field(default_factory=list)
    server_info: ServerInfo = Field(default_factory=ServerInfo)
    total_detected: int = 0


class SitemapUrl(CamelModel):
    loc: str
    lastmod: Optional[str] = None
    changefreq: Optional[str] = None
    priority: Optional[str] = None


class SitemapResult(CamelModel):
    urls: List[SitemapUrl] = Field(default_factory=list)
    source: Optional[str] = None
    error: Optional[str] = None


# --- Report ------------------------------------------------------------------------

OPTIONAL_SECTIONS = (
    "seo", "headings", "images", "links", "visual", "performance",
    "accessibility", "responsive", "security", "tech_stack", "sitemap",
)


class ScanReport(CamelModel):
    url: str
    scan_date: datetime
    overall_score: int
    screenshot: Optional[str] = None
    seo: Optional[SEOResult] = None
    headings: Optional[HeadingResult] = None
    images: Optional[ImageResult] = None
    links: Optional[LinkResult] = None
    visual: Optional[VisualResult] = None
    performance: Optional[PerformanceResult] = None
    accessibility: Optional[AccessibilityResult] = None
    responsive: Optional[ResponsiveResult] = None
    security: Optional[SecurityResult] = None
    tech_stack: Optional[TechStackResult] = None
    sitemap: Optional[SitemapResult] = None
    failed_checkers: List[str] = Field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        """JSON document for the presentation layer; sections that did not run are absent, not null."""
        absent = {name for name in OPTIONAL_SECTIONS if getattr(self, name) is None}
        return self.model_dump(mode="json", by_alias=True, exclude=absent)
