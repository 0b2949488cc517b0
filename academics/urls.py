from django.urls import path
from . import views

app_name = 'academics'

urlpatterns = [
    path('', views.index, name='index'),

    # Classes
    path('classes/', views.class_index, name='class_index'),
    path('classes/create/', views.class_create, name='class_create'),
    path('classes/<str:pk>/edit/', views.class_edit, name='class_edit'),
    path('classes/<str:pk>/delete/', views.class_delete, name='class_delete'),
    path('classes/<str:pk>/teacher/', views.class_assign_teacher, name='class_assign_teacher'),

    # Subjects
    path('subjects/', views.subject_index, name='subject_index'),
    path('subjects/create/', views.subject_create, name='subject_create'),
    path('subjects/<int:pk>/edit/', views.subject_edit, name='subject_edit'),
    path('subjects/<int:pk>/delete/', views.subject_delete, name='subject_delete'),
]
