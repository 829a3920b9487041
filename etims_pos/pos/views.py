from django.core.paginator import Paginator
from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from .models import Order, SalesInvoice
from .serializers import OrderSerializer, SalesInvoiceSerializer
from etims_pos.core.utils import create_audit_log, get_page_params


def paginated_response(request, queryset, serializer_class):
    page, limit = get_page_params(request, 20)
    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)

    serializer = serializer_class(page_obj, many=True)
    return Response({
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def order_list_create(request):
    """List all orders or create a new order"""
    if request.method == 'GET':
        queryset = Order.objects.all().prefetch_related('items', 'sales_invoices')

        status_filter = request.query_params.get('status', None)
        table = request.query_params.get('table', None)
        search = request.query_params.get('search', None)
        date_from = request.query_params.get('date_from', None)
        date_to = request.query_params.get('date_to', None)

        if status_filter:
            queryset = queryset.filter(status=status_filter)
        if table:
            queryset = queryset.filter(table_number=table)
        if search:
            queryset = queryset.filter(Q(order_number__icontains=search) | Q(customer_name__icontains=search))
        if date_from:
            queryset = queryset.filter(created_at__date__gte=date_from)
        if date_to:
            queryset = queryset.filter(created_at__date__lte=date_to)

        return paginated_response(request, queryset.order_by('-id'), OrderSerializer)
    else:  # POST
        data = request.data.copy()
        items_data = data.pop('items', [])

        serializer = OrderSerializer(data=data, context={'items_data': items_data, 'request': request})
        if serializer.is_valid():
            order = serializer.save(created_by=request.user)
            create_audit_log(
                request=request,
                action='order_create',
                model_name='Order',
                object_id=str(order.id),
                object_name=order.customer_name or order.table_number,
                object_reference=order.order_number,
                changes={'items': len(items_data), 'total': str(order.get_total())}
            )
            return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def order_detail(request, pk):
    """Retrieve an order, update its status/table/notes, or delete it"""
    order = get_object_or_404(Order.objects.prefetch_related('items'), pk=pk)

    if request.method == 'GET':
        return Response(OrderSerializer(order).data)
    elif request.method == 'PATCH':
        data = request.data.copy()
        data.pop('items', None)
        if order.sales_invoices.exists() and 'discount_amount' in data:
            return Response({
                'error': 'Order has already been invoiced',
                'message': 'The discount of an invoiced order cannot be changed'
            }, status=status.HTTP_400_BAD_REQUEST)

        serializer = OrderSerializer(order, data=data, partial=True, context={'request': request})
        if serializer.is_valid():
            order = serializer.save()
            return Response(OrderSerializer(order).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if order.sales_invoices.exists():
            return Response({
                'error': 'Order has already been invoiced',
                'message': 'Invoiced orders cannot be deleted'
            }, status=status.HTTP_400_BAD_REQUEST)
        order_number = order.order_number
        order_id = str(order.id)
        order.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Order',
            object_id=order_id,
            object_reference=order_number,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sales_invoice_list(request):
    """List sales invoices and credit notes"""
    queryset = SalesInvoice.objects.select_related('order', 'original_invoice')

    kra_status = request.query_params.get('kra_status', None)
    is_refund = request.query_params.get('is_refund', None)
    order_id = request.query_params.get('order', None)

    if kra_status:
        queryset = queryset.filter(kra_status=kra_status)
    if is_refund is not None:
        queryset = queryset.filter(is_refund=is_refund.lower() == 'true')
    if order_id:
        queryset = queryset.filter(order_id=order_id)

    return paginated_response(request, queryset.order_by('-id'), SalesInvoiceSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sales_invoice_detail(request, pk):
    """Retrieve a sales invoice"""
    invoice = get_object_or_404(SalesInvoice.objects.select_related('order', 'original_invoice'), pk=pk)
    return Response(SalesInvoiceSerializer(invoice).data)
