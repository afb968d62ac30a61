"""Post CRUD endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Response, status
from sqlalchemy import func, update
from sqlmodel import col, select

from peaceblog.api.deps import CurrentAdmin, SessionDep
from peaceblog.models import Post, PostStatus
from peaceblog.models.base import utcnow
from peaceblog.models.post import PostCreate, PostRead, PostUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_post_or_404(post_id: str, session: SessionDep) -> Post:
    """Get a post by ID or raise 404."""
    post = await session.get(Post, post_id)
    if not post:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Post not found",
        )
    return post


def newest_first():
    return select(Post).order_by(col(Post.created_at).desc())


@router.get("", response_model=list[PostRead])
async def list_posts(session: SessionDep):
    """List all posts, newest first."""
    result = await session.execute(newest_first())
    return result.scalars().all()


@router.get("/published", response_model=list[PostRead])
async def list_published_posts(session: SessionDep):
    """List published posts, newest first."""
    stmt = newest_first().where(Post.status == PostStatus.PUBLISHED)
    result = await session.execute(stmt)
    return result.scalars().all()


@router.get("/count", response_model=int)
async def count_posts(session: SessionDep):
    """Total number of posts."""
    result = await session.execute(select(func.count()).select_from(Post))
    return result.scalar() or 0


@router.get("/author/{username}", response_model=list[PostRead])
async def list_posts_by_author(username: str, session: SessionDep):
    """List posts written by username, newest first."""
    stmt = newest_first().where(Post.username == username)
    result = await session.execute(stmt)
    return result.scalars().all()


@router.get("/category/{category}", response_model=list[PostRead])
async def list_posts_by_category(category: str, session: SessionDep):
    """List posts in a category, newest first."""
    stmt = newest_first().where(Post.category == category)
    result = await session.execute(stmt)
    return result.scalars().all()


@router.get("/{post_id}", response_model=PostRead)
async def get_post(post_id: str, session: SessionDep):
    """Get a post and count the view."""
    # Increment in SQL so concurrent readers don't lose views
    stmt = (
        update(Post)
        .where(col(Post.id) == post_id)
        .values(view_count=col(Post.view_count) + 1)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Post not found",
        )
    await session.commit()

    post = await get_post_or_404(post_id, session)
    await session.refresh(post)
    return post


@router.post("", response_model=PostRead, status_code=status.HTTP_201_CREATED)
async def create_post(post_in: PostCreate, session: SessionDep, admin: CurrentAdmin):
    """Create a new post (admin only)."""
    post = Post(
        title=post_in.title,
        content=post_in.content,
        summary=post_in.summary,
        username=post_in.username,
        status=post_in.status or PostStatus.DRAFT,
        category=post_in.category,
        tags=post_in.tags or [],
        comment_enabled=True if post_in.comment_enabled is None else post_in.comment_enabled,
    )
    if post.status == PostStatus.PUBLISHED:
        post.published_at = utcnow()

    session.add(post)
    await session.commit()
    await session.refresh(post)

    logger.info(f"Post {post.id} created by {admin.subject}: {post.title!r}")
    return post


@router.put("/{post_id}", response_model=PostRead)
async def update_post(
    post_id: str,
    post_in: PostUpdate,
    session: SessionDep,
    admin: CurrentAdmin,
):
    """Update a post (admin only)."""
    post = await get_post_or_404(post_id, session)

    post.title = post_in.title
    post.content = post_in.content
    post.summary = post_in.summary
    post.category = post_in.category
    post.tags = post_in.tags or []
    if post_in.comment_enabled is not None:
        post.comment_enabled = post_in.comment_enabled
    post.updated_at = utcnow()

    await session.commit()
    await session.refresh(post)

    logger.info(f"Post {post.id} updated by {admin.subject}")
    return post


@router.post("/{post_id}/publish", response_model=PostRead)
async def publish_post(post_id: str, session: SessionDep, admin: CurrentAdmin):
    """Publish a post (admin only)."""
    post = await get_post_or_404(post_id, session)

    now = utcnow()
    post.status = PostStatus.PUBLISHED
    post.published_at = now
    post.updated_at = now

    await session.commit()
    await session.refresh(post)

    logger.info(f"Post {post.id} published by {admin.subject}")
    return post


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(post_id: str, session: SessionDep, admin: CurrentAdmin):
    """Delete a post (admin only)."""
    post = await get_post_or_404(post_id, session)

    await session.delete(post)
    await session.commit()

    logger.info(f"Post {post_id} deleted by {admin.subject}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
