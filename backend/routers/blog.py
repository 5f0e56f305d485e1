"""
blog.py — Blog & Sitemap Router
=================================

Handles:
  GET /api/blog/posts          — all posts, newest first
  GET /api/blog/posts/{slug}   — one post by its title slug
  GET /sitemap.xml             — static pages + one URL per post (no /api prefix)
"""

import logging
import os
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from config import SITE_URL
from database import get_db
from models import BlogPost
from utils.validators import slugify, escape_xml

logger = logging.getLogger(__name__)
router = APIRouter()
sitemap_router = APIRouter()

# (path, priority, changefreq)
STATIC_PAGES = [
    ("/", "1.0", "weekly"),
    ("/features", "0.9", "monthly"),
    ("/pricing", "0.9", "monthly"),
    ("/templates", "0.9", "weekly"),
    ("/product", "0.9", "monthly"),
    ("/integrations", "0.8", "monthly"),
    ("/use-cases", "0.8", "monthly"),
    ("/blog", "0.8", "weekly"),
    ("/help", "0.7", "monthly"),
    ("/community", "0.7", "weekly"),
    ("/api-docs", "0.6", "monthly"),
    ("/about", "0.7", "monthly"),
    ("/careers", "0.7", "monthly"),
    ("/contact", "0.8", "monthly"),
    ("/privacy", "0.5", "monthly"),
    ("/terms", "0.5", "monthly"),
    ("/cookies", "0.5", "monthly"),
]

BLOG_POST_PRIORITY = "0.7"
BLOG_POST_CHANGEFREQ = "monthly"

FALLBACK_SITEMAP = f"""<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url>
    <loc>{SITE_URL}/</loc>
    <priority>1.0</priority>
  </url>
</urlset>"""


def _post_dict(post: BlogPost) -> dict:
    return {
        "id": post.id,
        "slug": slugify(post.title),
        "title": post.title,
        "description": post.description,
        "content": post.content,
        "category": post.category,
        "thumbnail": post.thumbnail,
        "is_premium": bool(post.is_premium),
        "created_at": post.created_at.isoformat() if post.created_at else None,
        "updated_at": post.updated_at.isoformat() if post.updated_at else None,
    }


# ─────────────────────────────────────────────────────────────
# Blog
# ─────────────────────────────────────────────────────────────

@router.get("/blog/posts")
async def list_posts(category: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(BlogPost)
    if category:
        query = query.filter(BlogPost.category == category)
    posts = query.order_by(BlogPost.created_at.desc()).all()
    return {"posts": [_post_dict(p) for p in posts]}


@router.get("/blog/posts/{slug}")
async def get_post(slug: str, db: Session = Depends(get_db)):
    for post in db.query(BlogPost).order_by(BlogPost.created_at.desc()).all():
        if slugify(post.title) == slug:
            return _post_dict(post)
    raise HTTPException(404, "Blog post not found")


# ─────────────────────────────────────────────────────────────
# Sitemap
# ─────────────────────────────────────────────────────────────

def _url_entry(loc: str, lastmod: str, changefreq: str, priority: str) -> str:
    return (
        "\n  <url>"
        f"\n    <loc>{loc}</loc>"
        f"\n    <lastmod>{lastmod}</lastmod>"
        f"\n    <changefreq>{changefreq}</changefreq>"
        f"\n    <priority>{priority}</priority>"
        "\n  </url>"
    )


def build_sitemap(posts, today: Optional[str] = None) -> str:
    """Render the sitemap XML for the static pages and the given posts."""
    today = today or datetime.now(timezone.utc).strftime("%Y-%m-%d")

    static_urls = "".join(
        _url_entry(f"{SITE_URL}{path}", today, changefreq, priority)
        for path, priority, changefreq in STATIC_PAGES
    )

    blog_urls = ""
    for post in posts:
        modified = post.updated_at or post.created_at
        lastmod = modified.strftime("%Y-%m-%d") if modified else today
        loc = f"{SITE_URL}/blog/{escape_xml(slugify(post.title))}"
        blog_urls += _url_entry(loc, lastmod, BLOG_POST_CHANGEFREQ, BLOG_POST_PRIORITY)

    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"  <!-- Static Pages -->{static_urls}\n"
        f"  <!-- Blog Posts -->{blog_urls}\n"
        "</urlset>"
    )


@sitemap_router.get("/sitemap.xml")
async def sitemap(db: Session = Depends(get_db)):
    """Always 200; a database failure yields a home-page-only sitemap."""
    try:
        posts = db.query(BlogPost).order_by(BlogPost.created_at.desc()).all()
        logger.info(f"Generating sitemap with {len(posts)} blog post(s)")
        xml = build_sitemap(posts)
    except SQLAlchemyError as e:
        logger.error(f"Error generating sitemap: {e}")
        xml = FALLBACK_SITEMAP

    return Response(content=xml, media_type="application/xml")
