# apps/core/urls.py

from django.urls import path
from . import views

app_name = 'core'

urlpatterns = [
    # === AUTENTICAÇÃO ===
    path('auth/register/', views.register_view, name='register'),
    path('auth/login/', views.login_view, name='login'),
    path('auth/logout/', views.logout_view, name='logout'),
    path('auth/session/', views.session_view, name='session'),

    # === PROJETOS ===
    path('projects/', views.projects_view, name='projects'),
    path('projects/join/', views.join_project_view, name='join_project'),
    path('projects/<uuid:project_id>/', views.project_detail_view, name='project_detail'),
    path('projects/<uuid:project_id>/leave/', views.leave_project_view, name='leave_project'),
    path('projects/<uuid:project_id>/invite-code/', views.invite_code_view, name='invite_code'),

    # === MEMBROS ===
    path('projects/<uuid:project_id>/members/', views.members_view, name='members'),
    path('projects/<uuid:project_id>/members/<int:user_id>/roles/toggle/',
         views.toggle_member_role_view, name='toggle_member_role'),
    path('projects/<uuid:project_id>/members/<int:user_id>/roles/',
         views.set_member_roles_view, name='set_member_roles'),
    path('projects/<uuid:project_id>/members/<int:user_id>/remove/',
         views.remove_member_view, name='remove_member'),

    # === PAPÉIS ===
    path('projects/<uuid:project_id>/roles/', views.roles_view, name='roles'),
    path('projects/<uuid:project_id>/roles/<uuid:role_id>/', views.role_detail_view, name='role_detail'),

    # === MONITORAMENTO ===
    path('health/', views.health_check, name='health'),
]
