# apps/core/admin.py

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.html import format_html

from .models import (
    User, Project, ProjectMember, ProjectRole, Section, Task, TaskComment
)

STATUS_COLORS = {
    Task.STATUS_ACTIVE: '#3B82F6',  # azul
    Task.STATUS_DONE: '#22C55E',  # verde
    Task.STATUS_FAILED: '#EF4444',  # vermelho
}


def color_badge(color, text):
    return format_html(
        '<span style="background-color: {}; color: white; '
        'padding: 3px 8px; border-radius: 4px; font-size: 11px;">{}</span>',
        color, text
    )


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin customizado para o usuário do TeamSync"""

    list_display = [
        'username', 'email', 'get_full_name', 'streak',
        'last_active', 'is_active'
    ]
    list_filter = ['is_staff', 'is_active', 'date_joined']
    search_fields = ['username', 'first_name', 'last_name', 'email']
    ordering = ['-date_joined']

    fieldsets = BaseUserAdmin.fieldsets + (
        ('Atividade', {
            'fields': ('avatar', 'streak', 'last_active')
        }),
    )


class ProjectMemberInline(admin.TabularInline):
    model = ProjectMember
    extra = 0
    fields = ['user', 'role_titles', 'joined_at']


class ProjectRoleInline(admin.TabularInline):
    model = ProjectRole
    extra = 0
    fields = [
        'name', 'color', 'is_admin', 'can_invite', 'can_add_section',
        'can_delete_member', 'can_delete_task', 'can_edit_roles'
    ]


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    """Admin para gerenciamento de projetos"""

    list_display = ['name', 'invite_code', 'created_by', 'members_count', 'created_at']
    list_filter = ['created_at']
    search_fields = ['name', 'invite_code', 'created_by__username']
    readonly_fields = ['id', 'created_at']
    inlines = [ProjectRoleInline, ProjectMemberInline]

    def members_count(self, obj):
        return obj.members.count()

    members_count.short_description = 'Membros'


@admin.register(Section)
class SectionAdmin(admin.ModelAdmin):
    list_display = ['name', 'project', 'order', 'color_display', 'allowed_roles']
    list_filter = ['project']
    search_fields = ['name', 'project__name']
    ordering = ['project', 'order']

    def color_display(self, obj):
        return color_badge(obj.color, obj.color)

    color_display.short_description = 'Cor'


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    """Admin para tarefas"""

    list_display = ['title', 'project', 'section', 'status_badge', 'priority', 'deadline', 'updated_at']
    list_filter = ['status', 'priority', 'project']
    search_fields = ['title', 'description']
    readonly_fields = ['created_at', 'updated_at']
    date_hierarchy = 'created_at'

    fieldsets = (
        ('Informações Básicas', {
            'fields': ('project', 'section', 'title', 'description')
        }),
        ('Status', {
            'fields': ('status', 'priority', 'deadline')
        }),
        ('Equipe', {
            'fields': ('assigned_to_list', 'working_on_by', 'working_on_started')
        }),
        ('Datas', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        })
    )

    def status_badge(self, obj):
        return color_badge(STATUS_COLORS.get(obj.status, '#6B7280'), obj.get_status_display())

    status_badge.short_description = 'Status'


@admin.register(TaskComment)
class TaskCommentAdmin(admin.ModelAdmin):
    list_display = ['user_name', 'task', 'text_preview', 'timestamp']
    search_fields = ['text', 'user_name', 'task__title']
    readonly_fields = ['timestamp']

    def text_preview(self, obj):
        """Exibe preview do comentário"""
        return obj.text[:50] + '...' if len(obj.text) > 50 else obj.text

    text_preview.short_description = 'Comentário'


# Customização do Admin Site
admin.site.site_header = 'TeamSync - Administração'
admin.site.site_title = 'TeamSync Admin'
admin.site.index_title = 'Painel Administrativo'
