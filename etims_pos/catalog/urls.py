from django.urls import path
from .views import ingredient_list_create, ingredient_detail, recipe_list_create, recipe_detail

urlpatterns = [
    path('ingredients/', ingredient_list_create, name='ingredient-list-create'),
    path('ingredients/<int:pk>/', ingredient_detail, name='ingredient-detail'),
    path('recipes/', recipe_list_create, name='recipe-list-create'),
    path('recipes/<int:pk>/', recipe_detail, name='recipe-detail'),
]
