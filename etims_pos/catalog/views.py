from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import ProtectedError, Q
from django.shortcuts import get_object_or_404
from .models import Ingredient, Recipe
from .serializers import IngredientSerializer, RecipeSerializer


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def ingredient_list_create(request):
    """List all ingredients or create a new ingredient"""
    if request.method == 'GET':
        queryset = Ingredient.objects.all()

        search = request.query_params.get('search', None)
        category = request.query_params.get('category', None)
        kra_status = request.query_params.get('kra_status', None)

        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(item_cd__icontains=search))
        if category:
            queryset = queryset.filter(category__iexact=category)
        if kra_status:
            queryset = queryset.filter(kra_status=kra_status)

        serializer = IngredientSerializer(queryset, many=True)
        return Response(serializer.data)
    else:
        serializer = IngredientSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def ingredient_detail(request, pk):
    """Retrieve, update or delete an ingredient"""
    ingredient = get_object_or_404(Ingredient, pk=pk)

    if request.method == 'GET':
        return Response(IngredientSerializer(ingredient).data)
    elif request.method == 'PATCH':
        serializer = IngredientSerializer(ingredient, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        try:
            ingredient.delete()
        except ProtectedError:
            return Response({
                'error': 'Ingredient is used by one or more recipes',
                'message': 'Remove the ingredient from its recipes before deleting it'
            }, status=status.HTTP_400_BAD_REQUEST)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def recipe_list_create(request):
    """List all recipes or create a new recipe with its components"""
    if request.method == 'GET':
        queryset = Recipe.objects.prefetch_related('components', 'components__ingredient')

        search = request.query_params.get('search', None)
        is_active = request.query_params.get('is_active', None)
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(item_cd__icontains=search))
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')

        serializer = RecipeSerializer(queryset, many=True)
        return Response(serializer.data)
    else:
        serializer = RecipeSerializer(data=request.data)
        if serializer.is_valid():
            recipe = serializer.save()
            return Response(RecipeSerializer(recipe).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def recipe_detail(request, pk):
    """Retrieve, update or delete a recipe"""
    recipe = get_object_or_404(Recipe.objects.prefetch_related('components', 'components__ingredient'), pk=pk)

    if request.method == 'GET':
        return Response(RecipeSerializer(recipe).data)
    elif request.method == 'PATCH':
        serializer = RecipeSerializer(recipe, data=request.data, partial=True)
        if serializer.is_valid():
            recipe = serializer.save()
            # Components may have been replaced; drop the prefetched ones
            recipe._prefetched_objects_cache = {}
            return Response(RecipeSerializer(recipe).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if recipe.order_items.exists():
            recipe.is_active = False
            recipe.save(update_fields=['is_active', 'updated_at'])
            return Response(RecipeSerializer(recipe).data)
        recipe.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
