"""
URL configuration for the etims_pos project.

Every app mounts its routes under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "eTIMS POS Admin Panel"
admin.site.site_title = "eTIMS POS Admin Portal"
admin.site.index_title = "Restaurant POS & KRA eTIMS Administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('etims_pos.core.urls')),
    path('api/v1/', include('etims_pos.parties.urls')),
    path('api/v1/', include('etims_pos.catalog.urls')),
    path('api/v1/', include('etims_pos.pos.urls')),
    path('api/v1/', include('etims_pos.purchasing.urls')),
    path('api/v1/', include('etims_pos.kra.urls')),
]
