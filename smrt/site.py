"""Site-wide page metadata shared by every storefront page."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

TITLE_TEMPLATE = "%s | SMRT"
DEFAULT_TITLE = "SMRT"
DESCRIPTION = (
    "SMRT is your smart destination for electronics, computers, and tech essentials. "
    "Shop top brands, great prices, fast US shipping, and worldwide delivery."
)
LANGUAGE = "en"


class SiteMetadata(BaseModel):
    title_template: str = TITLE_TEMPLATE
    default_title: str = DEFAULT_TITLE
    description: str = DESCRIPTION
    lang: str = LANGUAGE
    base_url: str


def page_title(title: Optional[str] = None) -> str:
    """`Computers` -> `Computers | SMRT`; no title gives the bare site name."""
    if not title:
        return DEFAULT_TITLE
    return TITLE_TEMPLATE % title
