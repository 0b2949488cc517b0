from django.urls import path
from . import views

app_name = 'communications'

urlpatterns = [
    path('', views.index, name='index'),
    path('create/', views.announcement_create, name='announcement_create'),
    path('<int:pk>/edit/', views.announcement_edit, name='announcement_edit'),
    path('<int:pk>/delete/', views.announcement_delete, name='announcement_delete'),
    path('<int:pk>/toggle/', views.announcement_toggle, name='announcement_toggle'),
]
