"""Brand-asset extraction from a mirrored site.

Given a crawl's output directory and the site's original URL, parse the index
document (plus its local stylesheets) and collect logos, a color palette,
fonts, layout regions and page metadata. Single pass, heuristic, no network.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union
from urllib.parse import unquote, urlparse

from bs4 import BeautifulSoup, Tag

from app.errors import ExtractionError
from app.extraction import css
from app.extraction.models import (
    BrandAssets,
    ColorPalette,
    FontAsset,
    FontSource,
    LayoutRegion,
    LayoutStructure,
    LogoAsset,
    LogoType,
    SiteMetadata,
)
from app.storage.downloads import find_index_file

logger = logging.getLogger(__name__)

FAVICON_SELECTOR = 'link[rel="icon"], link[rel="shortcut icon"]'

LOGO_SELECTORS = [
    'header img[src*="logo"], header img[alt*="logo"], header img[alt*="Logo"]',
    'footer img[src*="logo"], footer img[alt*="logo"], footer img[alt*="Logo"]',
    '.logo img, #logo img, [class*="logo"] img',
    'img[src*="logo"], img[alt*="logo"], img[alt*="Logo"]',
]

LAYOUT_SELECTORS = {
    "header": ["header", ".header", "#header"],
    "footer": ["footer", ".footer", "#footer"],
    "navigation": ["nav", ".nav", "#nav", ".navigation", "#navigation"],
    "main_content": ["main", ".main", "#main", ".content", "#content"],
    "sidebar": ["aside", ".sidebar", "#sidebar"],
}


def extract_assets(output_dir: Union[str, Path], target_url: str) -> BrandAssets:
    """Extract the brand-asset bundle of the site mirrored into output_dir."""
    return AssetExtractor(Path(output_dir), target_url).extract()


class AssetExtractor:
    def __init__(self, download_path: Path, base_url: str):
        self.download_path = download_path.resolve()
        self.base_url = base_url
        self._host = urlparse(base_url).netloc.lower()

    def extract(self) -> BrandAssets:
        index_file = find_index_file(self.download_path)
        if index_file is None:
            raise ExtractionError("No index.html file found in downloaded site")

        try:
            html = index_file.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise ExtractionError(f"Could not read {index_file}: {exc}") from exc

        soup = BeautifulSoup(html, "html.parser")
        base_dir = index_file.parent
        stylesheets = self._read_stylesheets(soup, base_dir)

        assets = BrandAssets(
            logos=self.extract_logos(soup, base_dir),
            colors=self.extract_colors(soup, stylesheets),
            fonts=self.extract_fonts(soup, stylesheets),
            layout=self.extract_layout(soup),
            metadata=self.extract_metadata(soup),
        )
        logger.info(
            "Extracted %d logos, %d colors, %d fonts from %s",
            len(assets.logos), len(assets.colors.all), len(assets.fonts), index_file,
        )
        return assets

    # ------------------------------------------------------------------
    # Logos
    # ------------------------------------------------------------------

    def extract_logos(self, soup: BeautifulSoup, base_dir: Path) -> List[LogoAsset]:
        logos: List[LogoAsset] = []
        seen = set()

        favicon = soup.select_one(FAVICON_SELECTOR)
        if favicon is not None and favicon.get("href"):
            href = favicon["href"]
            path = self.resolve_local_path(href, base_dir)
            if path is not None and path.is_file():
                seen.add(path)
                logos.append(LogoAsset(
                    type=LogoType.FAVICON,
                    src=href,
                    filename=path.name,
                    local_path=str(path),
                ))

        for selector in LOGO_SELECTORS:
            for img in soup.select(selector):
                src = img.get("src")
                if not src:
                    continue
                path = self.resolve_local_path(src, base_dir)
                if path is None or not path.is_file() or path in seen:
                    continue
                seen.add(path)
                logos.append(LogoAsset(
                    type=_logo_type(img),
                    src=src,
                    alt=img.get("alt") or None,
                    width=_int_attr(img, "width"),
                    height=_int_attr(img, "height"),
                    filename=path.name,
                    local_path=str(path),
                ))
        return logos

    def resolve_local_path(self, url: str, base_dir: Path) -> Optional[Path]:
        """Map a URL found in the document onto a file inside the mirror.

        Relative URLs resolve against the document's directory; absolute URLs
        on the site's own origin resolve against the download root. Anything
        else (other hosts, data: URIs, paths escaping the mirror) is None.
        """
        url = url.strip()
        if not url or url.startswith(("data:", "javascript:", "mailto:", "#")):
            return None

        parsed = urlparse(url)
        if parsed.scheme in ("http", "https") or url.startswith("//"):
            if not self._host or parsed.netloc.lower() != self._host:
                return None
            # HTTrack stores pages under <root>/<host>/<path>
            candidate = self.download_path / parsed.netloc / unquote(parsed.path).lstrip("/")
            if not candidate.exists():
                candidate = self.download_path / unquote(parsed.path).lstrip("/")
        elif parsed.scheme:
            return None
        elif parsed.path.startswith("/"):
            candidate = self.download_path / unquote(parsed.path).lstrip("/")
        else:
            candidate = base_dir / unquote(parsed.path)

        resolved = candidate.resolve()
        if resolved != self.download_path and self.download_path not in resolved.parents:
            return None
        return resolved

    # ------------------------------------------------------------------
    # Colors and fonts
    # ------------------------------------------------------------------

    def _read_stylesheets(self, soup: BeautifulSoup, base_dir: Path) -> List[str]:
        sheets = []
        for link in soup.select('link[rel="stylesheet"]'):
            href = link.get("href")
            if not href:
                continue
            path = self.resolve_local_path(href, base_dir)
            if path is None or not path.is_file():
                continue
            try:
                sheets.append(path.read_text(encoding="utf-8", errors="replace"))
            except OSError as exc:
                logger.warning("Skipping unreadable stylesheet %s: %s", path, exc)
        return sheets

    def extract_colors(self, soup: BeautifulSoup, stylesheets: List[str]) -> ColorPalette:
        found: List[str] = []
        for element in soup.select("[style]"):
            found.extend(css.extract_colors(element.get("style", "")))
        for style in soup.find_all("style"):
            found.extend(css.extract_colors(style.get_text()))
        for sheet in stylesheets:
            found.extend(css.extract_colors(sheet))
        return ColorPalette(**css.categorize_colors(found))

    def extract_fonts(self, soup: BeautifulSoup, stylesheets: List[str]) -> List[FontAsset]:
        fonts: Dict[str, FontAsset] = {}

        for link in soup.select('link[href*="fonts.googleapis.com"]'):
            href = link.get("href", "")
            family = css.google_font_family(href)
            if family:
                fonts[family] = FontAsset(family=family, source=FontSource.GOOGLE, url=href)

        css_texts = [style.get_text() for style in soup.find_all("style")] + stylesheets
        for text in css_texts:
            for face in css.extract_font_faces(text):
                fonts[face["family"]] = FontAsset(
                    family=face["family"],
                    source=FontSource.SELF_HOSTED,
                    url=face["url"],
                    weight=face["weight"],
                    style=face["style"],
                    filename=Path(urlparse(face["url"]).path).name or None,
                )

        body = soup.body
        if body is not None and body.get("style"):
            declarations = _parse_inline_style(body["style"])
            for family in css.parse_font_family_list(declarations.get("font-family", "")):
                if family not in fonts:
                    fonts[family] = FontAsset(family=family, source=FontSource.SYSTEM)

        return list(fonts.values())

    # ------------------------------------------------------------------
    # Layout and metadata
    # ------------------------------------------------------------------

    def extract_layout(self, soup: BeautifulSoup) -> LayoutStructure:
        regions = {}
        for region, selectors in LAYOUT_SELECTORS.items():
            regions[region] = None
            for selector in selectors:
                element = soup.select_one(selector)
                if element is not None:
                    regions[region] = LayoutRegion(
                        tag=element.name,
                        id=element.get("id") or None,
                        classes=list(element.get("class") or []),
                        selector=selector,
                    )
                    break
        return LayoutStructure(**regions)

    def extract_metadata(self, soup: BeautifulSoup) -> SiteMetadata:
        title = soup.title.get_text().strip() if soup.title else ""
        keywords = _meta(soup, "keywords")
        return SiteMetadata(
            title=title,
            description=_meta(soup, "description"),
            keywords=[k.strip() for k in keywords.split(",")] if keywords else None,
            viewport=_meta(soup, "viewport"),
            theme_color=_meta(soup, "theme-color"),
        )


def _logo_type(img: Tag) -> LogoType:
    parent = img.find_parent(["header", "footer"])
    if parent is None:
        return LogoType.OTHER
    return LogoType.HEADER if parent.name == "header" else LogoType.FOOTER


def _int_attr(tag: Tag, name: str) -> Optional[int]:
    value = (tag.get(name) or "").strip().removesuffix("px")
    return int(value) if value.isdigit() and int(value) > 0 else None


def _meta(soup: BeautifulSoup, name: str) -> Optional[str]:
    tag = soup.find("meta", attrs={"name": name})
    if tag is None or not tag.get("content"):
        return None
    return tag["content"]


def _parse_inline_style(style: str) -> Dict[str, str]:
    declarations = {}
    for part in style.split(";"):
        if ":" in part:
            key, value = part.split(":", 1)
            declarations[key.strip().lower()] = value.strip()
    return declarations
