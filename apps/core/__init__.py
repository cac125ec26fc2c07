# apps/core/__init__.py

"""
Core - Aplicação principal do TeamSync

Contém:
- Models (User, Project, ProjectMember, ProjectRole, Section, Task, TaskComment)
- WorkspaceStore com mutações otimistas e outbox
- Sistema de permissões por papéis
- Views de autenticação, projetos, membros e papéis
- Comandos seed e sweep_deadlines
"""
