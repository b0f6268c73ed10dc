from django.urls import path
from .views import (
    CardDetailView,
    CardHistoryView,
    CardPreviewView,
    CardScheduleView,
    CardsView,
    DueCardsView,
    ProgressView,
    ReviewView,
    StudyStatsView,
)

urlpatterns = [
    path("reviews", ReviewView.as_view(), name="review"),
    path("users/<uuid:user_id>/due-cards", DueCardsView.as_view(), name="due-cards"),
    path("users/<uuid:user_id>/stats", StudyStatsView.as_view(), name="study-stats"),
    path("users/<uuid:user_id>/progress", ProgressView.as_view(), name="progress"),
    path("cards", CardsView.as_view(), name="cards"),
    path("cards/<uuid:card_id>", CardDetailView.as_view(), name="card-detail"),
    path("cards/<uuid:card_id>/schedule", CardScheduleView.as_view(), name="card-schedule"),
    path("cards/<uuid:card_id>/reviews", CardHistoryView.as_view(), name="card-reviews"),
    path("cards/<uuid:card_id>/preview", CardPreviewView.as_view(), name="card-preview"),
]
