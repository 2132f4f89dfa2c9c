"""Post rendering — frontmatter, slugs, filenames and public URLs."""

from __future__ import annotations

import re
from datetime import date as date_cls
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict

from blogsync.models.blogs import BlogTarget
from blogsync.models.tags import TaggedContent

_FRONTMATTER_RE = re.compile(r"\A---\s*\n(.*?)\n---\s*(?:\n|\Z)", re.DOTALL)
_HEADING_RE = re.compile(r"^#\s+(.+?)\s*#*\s*$", re.MULTILINE)


class RenderedPost(BaseModel):
    """A post ready to be written to the repository."""

    model_config = ConfigDict(frozen=True)

    title: str
    slug: str
    content: str


def slugify(text: str) -> str:
    """Create a URL-safe slug from text."""
    slug = text.lower().strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def split_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Return (frontmatter mapping, body).  Missing frontmatter is ``{}``."""
    match = _FRONTMATTER_RE.match(content)
    if match is None:
        return {}, content
    data = yaml.safe_load(match.group(1)) or {}
    if not isinstance(data, dict):
        return {}, content
    return data, content[match.end():]


def first_heading(body: str) -> str | None:
    match = _HEADING_RE.search(body)
    return match.group(1).strip() if match else None


def _with_frontmatter(meta: dict[str, Any], body: str) -> str:
    header = yaml.safe_dump(meta, sort_keys=False, allow_unicode=True).strip()
    return f"---\n{header}\n---\n\n{body.strip()}\n"


def render_tagged_post(
    tag: str, sections: list[TaggedContent], *, today: date_cls | None = None
) -> RenderedPost:
    """Assemble a post from tagged sections, oldest first."""
    if not sections:
        raise ValueError(f"No content tagged #{tag}")
    ordered = sorted(sections, key=lambda s: (s.date, s.timestamp))
    body = "\n\n".join(section.content.strip() for section in ordered)
    title = first_heading(body) or tag.replace("-", " ").replace("_", " ").title()
    slug = slugify(tag) or slugify(title)
    meta = {
        "title": title,
        "date": (today or date_cls.today()).isoformat(),
        "tags": [tag],
        "draft": False,
    }
    return RenderedPost(title=title, slug=slug, content=_with_frontmatter(meta, body))


def render_direct_post(content: str, *, today: date_cls | None = None) -> RenderedPost:
    """Normalize fully formed content; frontmatter is added when missing."""
    meta, body = split_frontmatter(content)
    title = str(meta.get("title") or first_heading(body) or "Untitled")
    slug = slugify(str(meta.get("slug") or title))
    if not slug:
        raise ValueError("Cannot derive a slug from the post title")
    if meta:
        return RenderedPost(title=title, slug=slug, content=content)
    meta = {
        "title": title,
        "date": (today or date_cls.today()).isoformat(),
        "draft": False,
    }
    return RenderedPost(title=title, slug=slug, content=_with_frontmatter(meta, body))


def post_filename(
    template: str,
    *,
    slug: str,
    tag: str | None = None,
    today: date_cls | None = None,
    multi_file: bool = False,
) -> str:
    """Expand the blog's filename template; ``{tag}`` falls back to the slug.

    Multi-file blogs keep each post in its own folder as ``<name>/index.md``.
    """
    filename = template.format(
        tag=slugify(tag) if tag else slug,
        slug=slug,
        date=(today or date_cls.today()).isoformat(),
    )
    if "." not in filename.rsplit("/", 1)[-1]:
        filename = f"{filename}.md"
    if multi_file and "/" not in filename:
        stem, _, extension = filename.rpartition(".")
        filename = f"{stem}/index.{extension}"
    return filename


def post_path(blog: BlogTarget, filename: str) -> str:
    directory = blog.content.directory
    return f"{directory}/{filename}" if directory else filename


def post_url(blog: BlogTarget, slug: str) -> str:
    """Public URL of a post under the blog's live-post path."""
    prefix = "/" + blog.content.live_post_path.strip("/")
    if prefix == "/":
        prefix = ""
    return f"{blog.site_url.rstrip('/')}{prefix}/{slug}/"


def sibling_path(path: str, new_name: str) -> str:
    """Same directory, new filename."""
    parts = path.split("/")
    parts[-1] = new_name
    return "/".join(parts)


def renamed_path(blog: BlogTarget, path: str, new_name: str) -> str:
    """Where ``path`` ends up when renamed to ``new_name``.

    A multi-file post is renamed by its folder; the index file keeps its name.
    """
    if blog.content.multi_file:
        folder, _, index = path.rpartition("/")
        return f"{sibling_path(folder, new_name)}/{index}"
    return sibling_path(path, new_name)
