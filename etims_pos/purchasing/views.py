from django.core.paginator import Paginator
from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from .models import Purchase
from .serializers import PurchaseSerializer, adjust_purchase_stock
from etims_pos.core.utils import create_audit_log, get_page_params


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def purchase_list_create(request):
    """List all purchases or create a new purchase"""
    if request.method == 'GET':
        queryset = Purchase.objects.all().select_related('supplier').prefetch_related('items', 'items__ingredient')

        # Filters
        supplier = request.query_params.get('supplier', None)
        date_from = request.query_params.get('date_from', None)
        date_to = request.query_params.get('date_to', None)
        status_filter = request.query_params.get('status', None)
        kra_status = request.query_params.get('kra_status', None)

        if supplier:
            queryset = queryset.filter(supplier_id=supplier)
        if date_from:
            queryset = queryset.filter(purchase_date__gte=date_from)
        if date_to:
            queryset = queryset.filter(purchase_date__lte=date_to)
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        if kra_status:
            queryset = queryset.filter(kra_status=kra_status)

        queryset = queryset.order_by('-id')

        page, limit = get_page_params(request, 15)
        paginator = Paginator(queryset, limit)
        page_obj = paginator.get_page(page)

        serializer = PurchaseSerializer(page_obj, many=True)
        return Response({
            'results': serializer.data,
            'count': paginator.count,
            'next': page_obj.next_page_number() if page_obj.has_next() else None,
            'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
            'page': page,
            'page_size': limit,
            'total_pages': paginator.num_pages,
        })
    else:  # POST
        data = request.data.copy()
        items_data = data.pop('items', [])

        serializer = PurchaseSerializer(data=data, context={'items_data': items_data, 'request': request})
        if serializer.is_valid():
            purchase = serializer.save(created_by=request.user)
            create_audit_log(
                request=request,
                action='purchase_create',
                model_name='Purchase',
                object_id=str(purchase.id),
                object_name=purchase.supplier.name,
                object_reference=purchase.purchase_number,
                changes={'supplier_invoice_no': purchase.supplier_invoice_no, 'items': len(items_data)}
            )
            return Response(PurchaseSerializer(purchase).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def purchase_detail(request, pk):
    """Retrieve, update or delete a purchase"""
    purchase = get_object_or_404(Purchase.objects.prefetch_related('items', 'items__ingredient'), pk=pk)

    if request.method == 'GET':
        return Response(PurchaseSerializer(purchase).data)
    elif request.method == 'PATCH':
        data = request.data.copy()
        items_data = data.pop('items', None)

        serializer = PurchaseSerializer(
            purchase,
            data=data,
            partial=True,
            context={'items_data': items_data, 'request': request}
        )
        if serializer.is_valid():
            purchase = serializer.save()
            purchase._prefetched_objects_cache = {}
            return Response(PurchaseSerializer(purchase).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if purchase.kra_status == 'ok':
            return Response({
                'error': 'Purchase has already been submitted to KRA',
                'message': 'Submitted purchases cannot be deleted'
            }, status=status.HTTP_400_BAD_REQUEST)

        purchase_number = purchase.purchase_number
        purchase_id = str(purchase.id)
        with transaction.atomic():
            if purchase.status == 'finalized':
                adjust_purchase_stock(purchase, -1)
            purchase.delete()

        create_audit_log(
            request=request,
            action='delete',
            model_name='Purchase',
            object_id=purchase_id,
            object_reference=purchase_number,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)
