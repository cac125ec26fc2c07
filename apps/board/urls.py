# apps/board/urls.py

from django.urls import path
from . import views

app_name = 'board'

urlpatterns = [
    # Board principal
    path('<uuid:project_id>/', views.board_view, name='board'),

    # Seções
    path('<uuid:project_id>/sections/', views.create_section_view, name='create_section'),
    path('<uuid:project_id>/sections/<uuid:section_id>/', views.section_detail_view, name='section_detail'),

    # Tarefas
    path('<uuid:project_id>/sections/<uuid:section_id>/tasks/', views.section_tasks_view, name='section_tasks'),
    path('<uuid:project_id>/tasks/<uuid:task_id>/', views.task_detail_view, name='task_detail'),
    path('<uuid:project_id>/tasks/<uuid:task_id>/toggle/', views.toggle_task_view, name='toggle_task'),
    path('<uuid:project_id>/tasks/<uuid:task_id>/working/', views.working_on_view, name='working_on'),
    path('<uuid:project_id>/members/<int:user_id>/working/', views.member_working_on_view, name='member_working_on'),

    # Comentários
    path('<uuid:project_id>/tasks/<uuid:task_id>/comments/', views.task_comments_view, name='task_comments'),

    # Busca e prazos
    path('<uuid:project_id>/search/', views.search_view, name='search'),
    path('<uuid:project_id>/overdue/', views.overdue_view, name='overdue'),
    path('<uuid:project_id>/failed/', views.failed_view, name='failed'),
    path('<uuid:project_id>/sweep/', views.sweep_view, name='sweep'),
]
