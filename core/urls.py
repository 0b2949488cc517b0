from django.urls import path
from . import views

app_name = 'core'

urlpatterns = [
    # Dashboard
    path('', views.index, name='index'),

    # JSON API
    path('api/refresh/', views.api_refresh, name='api_refresh'),
    path('api/<str:entity>/', views.api_collection, name='api_collection'),
    path('api/<str:entity>/<str:pk>/', views.api_record, name='api_record'),
]
