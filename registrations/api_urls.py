"""
API URL patterns for registrations app (Bazik payments).
"""
from django.urls import path
from . import views

urlpatterns = [
    path('registrations/initialize-payment/', views.initialize_payment, name='initialize_payment'),
    path('promo/validate/', views.validate_promo, name='validate_promo'),
    path('bazik/webhook/', views.bazik_webhook, name='bazik_webhook'),
    path('bazik/verify/', views.verify_payment, name='verify_payment'),
    path('formation-access/', views.send_formation_access, name='send_formation_access'),
]
