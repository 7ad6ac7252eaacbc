# bloodbank/urls.py
from django.urls import path, include
from rest_framework import routers
from . import views

# DRF Router for API
router = routers.DefaultRouter()
router.register(r'api/users', views.UserViewSet, basename='api-users')
router.register(r'api/inventory', views.InventoryViewSet, basename='api-inventory')
router.register(r'api/donations', views.DonationViewSet, basename='api-donations')
router.register(r'api/requests', views.BloodRequestViewSet, basename='api-requests')

urlpatterns = [
    path('', include(router.urls)),
]
