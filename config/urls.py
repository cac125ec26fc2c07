# config/urls.py

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),

    # API JSON: autenticação, projetos, membros, papéis, health
    path('', include('apps.core.urls')),

    # Board: seções, tarefas, comentários, busca
    path('board/', include('apps.board.urls')),
]

# Avatares em desenvolvimento
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
