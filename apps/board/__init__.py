# apps/board/__init__.py

"""
Board - Aplicação do quadro de tarefas do TeamSync

Funcionalidades:
- Seções e tarefas com controle de papéis
- WebSockets para atualizações em tempo real
- Trabalho em andamento, comentários, busca e prazos
"""
