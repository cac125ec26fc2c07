# apps/__init__.py

"""
TeamSync - Aplicações Django

Este pacote contém todas as aplicações do sistema:
- core: Models, WorkspaceStore, autenticação e permissões
- board: Board do projeto, tarefas, comentários e WebSockets
"""

__version__ = '0.1.0'
