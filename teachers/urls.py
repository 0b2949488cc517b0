from django.urls import path
from . import views

app_name = 'teachers'

urlpatterns = [
    path('', views.index, name='index'),
    path('create/', views.teacher_create, name='teacher_create'),
    path('<int:pk>/edit/', views.teacher_edit, name='teacher_edit'),
    path('<int:pk>/delete/', views.teacher_delete, name='teacher_delete'),
    path('<int:pk>/reset-password/', views.teacher_reset_password, name='teacher_reset_password'),
]
