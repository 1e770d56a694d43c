from django.urls import path, include

urlpatterns = [
    path('api/pricing/', include('pricing.urls')),
]
