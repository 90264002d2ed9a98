from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from marketplace.application.catalog_service import CatalogService
from marketplace.application.review_service import ReviewService
from marketplace.application.schemas import (
    BannerRead,
    CategoryDetail,
    CategoryWithCount,
    PlanRead,
    RestaurantDetail,
    RestaurantSummary,
    ReviewRead,
    SearchResults,
)
from marketplace.infrastructure.db import get_db

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/restaurants", response_model=list[RestaurantSummary])
def list_restaurants(
    q: Optional[str] = None,
    category: Optional[str] = None,
    sort: str = "recent",
    db: Session = Depends(get_db),
):
    """Publicly visible restaurants, optionally filtered by text and category slug."""
    return CatalogService(db).list_restaurants(q=q, category_slug=category, sort=sort)


@router.get("/restaurants/{slug}", response_model=RestaurantDetail)
def get_restaurant(slug: str, db: Session = Depends(get_db)):
    return CatalogService(db).get_restaurant(slug)


@router.get("/restaurants/{slug}/reviews", response_model=list[ReviewRead])
def list_restaurant_reviews(slug: str, db: Session = Depends(get_db)):
    return ReviewService(db).list_for_restaurant_slug(slug)


@router.get("/categories", response_model=list[CategoryWithCount])
def list_categories(db: Session = Depends(get_db)):
    return CatalogService(db).list_categories()


@router.get("/categories/{slug}", response_model=CategoryDetail)
def get_category(slug: str, db: Session = Depends(get_db)):
    return CatalogService(db).get_category(slug)


@router.get("/search", response_model=SearchResults)
def search(q: str = Query(default=""), db: Session = Depends(get_db)):
    return CatalogService(db).search(q)


@router.get("/banners", response_model=list[BannerRead])
def list_banners(location: str = "HOME", db: Session = Depends(get_db)):
    return CatalogService(db).list_banners(location)


@router.get("/plans", response_model=list[PlanRead])
def list_plans(db: Session = Depends(get_db)):
    return CatalogService(db).list_plans()
