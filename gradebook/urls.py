from django.urls import path
from . import views

app_name = 'gradebook'

urlpatterns = [
    # Grade Entry
    path('', views.grade_entry, name='grade_entry'),
    path('students/<int:student_id>/overview/', views.student_overview, name='student_overview'),
    path('grades/<uuid:pk>/edit/', views.grade_edit, name='grade_edit'),
    path('grades/<uuid:pk>/delete/', views.grade_delete, name='grade_delete'),

    # Reports
    path('reports/', views.reports, name='reports'),
    path('reports/<int:student_id>/pdf/', views.report_pdf, name='report_pdf'),
    path('reports/export/', views.bulk_export_start, name='bulk_export_start'),
    path('reports/export/<str:task_id>/status/', views.bulk_export_status, name='bulk_export_status'),
    path('reports/export/download/<str:filename>/', views.bulk_export_download, name='bulk_export_download'),

    # Analytics
    path('analytics/', views.analytics, name='analytics'),
    path('analytics/export/', views.analytics_export, name='analytics_export'),
]
