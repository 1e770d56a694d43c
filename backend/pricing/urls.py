from django.urls import path

from .views import ContextValidateView, PerpetualView, PreviewView, PriceTiersView, QuoteCalculateView

app_name = 'pricing'

urlpatterns = [
    path('quote/calculate', QuoteCalculateView.as_view(), name='quote-calculate'),
    path('preview', PreviewView.as_view(), name='preview'),
    path('tiers', PriceTiersView.as_view(), name='tiers'),
    path('perpetual', PerpetualView.as_view(), name='perpetual'),
    path('context/validate', ContextValidateView.as_view(), name='context-validate'),
]
