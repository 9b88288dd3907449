"""Read-only model over the external blog database's published articles."""

from enum import IntEnum

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel


class ArticleStatus(IntEnum):
    """Publication status codes used by the blog database."""

    DRAFT = 1
    PUBLISHED = 2


class PublishedArticle(SQLModel, table=True):
    """Article row owned by the external blog system; never written here."""

    __tablename__ = "published_articles"

    id: int = Field(primary_key=True)
    title: str = Field(default="", sa_column=Column(Text))
    content: str = Field(default="", sa_column=Column(Text))
    author_id: int = Field(index=True)
    status: int = Field(default=ArticleStatus.DRAFT.value)
    ctime: int = Field(default=0)  # unix seconds
    utime: int = Field(default=0, index=True)  # unix seconds
