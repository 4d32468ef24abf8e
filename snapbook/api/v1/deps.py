from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import Settings, get_settings
from ...core.clock import Clock, SystemClock
from ...database import get_db
from ...services.snap_service import SnapService
from ...services.standup_book_service import StandupBookService
from ...services.text_classifier import TextClassifier, build_text_classifier


@lru_cache()
def get_app_settings() -> Settings:
    return get_settings()


def get_clock(settings: Settings = Depends(get_app_settings)) -> Clock:
    return SystemClock(settings.timezone)


@lru_cache()
def _shared_classifier() -> TextClassifier:
    return build_text_classifier(get_app_settings())


def get_text_classifier() -> TextClassifier:
    return _shared_classifier()


def get_snap_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    classifier: TextClassifier = Depends(get_text_classifier),
    settings: Settings = Depends(get_app_settings),
) -> SnapService:
    return SnapService(db, clock=clock, classifier=classifier, settings=settings)


def get_standup_book_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> StandupBookService:
    return StandupBookService(db, clock)
