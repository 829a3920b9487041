import logging

from django.core.paginator import Paginator
from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from etims_pos.core.utils import can_manage_kra, create_audit_log, get_page_params
from . import services
from .credentials import DeviceNotInitialized, get_active_credential
from .filters import KraTransactionFilter
from .models import DeviceCredential, KraTransaction
from .serializers import (
    CustomerRegistrationSerializer, DeviceCredentialSerializer, ItemCompositionSerializer,
    KraTransactionListSerializer, KraTransactionSerializer, PurchaseSubmissionSerializer, ReferenceListSerializer,
    RefundSerializer, RegisterItemSerializer, RetrySaleSerializer, SaleSubmissionSerializer, StockIOSerializer,
    StockMasterSerializer,
)

logger = logging.getLogger(__name__)


def first_error(errors):
    """First message in a (possibly nested) DRF error structure"""
    if isinstance(errors, dict):
        for field, value in errors.items():
            message = first_error(value)
            if message:
                return message if field == 'non_field_errors' else f"{field}: {message}"
        return None
    if isinstance(errors, list):
        for value in errors:
            message = first_error(value)
            if message:
                return message
        return None
    return str(errors) if errors else None


def validation_error_response(serializer):
    return Response({
        'success': False,
        'error': first_error(serializer.errors) or 'Invalid request',
        'errors': serializer.errors,
    }, status=status.HTTP_400_BAD_REQUEST)


def run_submission(flow, request, **kwargs):
    """Run a submission flow and render the result with the KRA status-code contract"""
    try:
        result = flow(user=request.user, request=request, **kwargs)
    except services.SubmissionError as e:
        return Response({'success': False, 'error': e.message, **e.extra}, status=e.status_code)
    except DeviceNotInitialized as e:
        return Response({'success': False, 'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.exception(f"KRA {flow.__name__} failed")
        return Response({
            'success': False,
            'error': str(e) or 'Internal error during KRA submission'
        }, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    response_status = status.HTTP_200_OK if result.success else status.HTTP_400_BAD_REQUEST
    return Response(result.to_response_data(), status=response_status)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def submit_purchase(request):
    """Send a supplier purchase to KRA (insertTrnsPurchase)"""
    serializer = PurchaseSubmissionSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer)
    return run_submission(services.submit_purchase, request, purchase_id=serializer.validated_data['purchase_id'])


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def save_sale(request):
    """Invoice an order and register the sale with KRA (saveTrnsSalesOsdc)"""
    serializer = SaleSubmissionSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer)
    data = serializer.validated_data
    return run_submission(
        services.submit_sale, request,
        order_id=data['order_id'],
        payment_method=data['payment_method'],
        customer_id=data.get('customer_id'),
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def retry_sale(request):
    """Re-send a failed sale as a new attempt"""
    serializer = RetrySaleSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer)
    return run_submission(services.retry_sale, request, sales_invoice_id=serializer.validated_data['sales_invoice_id'])


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def refund_sale(request):
    """Issue a full, partial or per-item credit note for a registered sale"""
    serializer = RefundSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer)
    data = serializer.validated_data
    return run_submission(
        services.refund_sale, request,
        sales_invoice_id=data['sales_invoice_id'],
        refund_type=data['refund_type'],
        refund_percentage=data.get('refund_percentage'),
        refund_amount=data.get('refund_amount'),
        refund_items=data.get('items'),
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def register_item(request):
    """Register an ingredient or recipe with KRA (saveItem)"""
    serializer = RegisterItemSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer)
    data = serializer.validated_data
    return run_submission(services.register_item, request, item_type=data['item_type'], item_id=data['item_id'])


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def send_item_composition(request):
    """Send a recipe's ingredient composition to KRA (saveItemComposition)"""
    serializer = ItemCompositionSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer)
    return run_submission(services.send_item_composition, request, recipe_id=serializer.validated_data['recipe_id'])


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def stock_io(request):
    """Report a stock movement to KRA (insertStockIO)"""
    serializer = StockIOSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer)
    data = serializer.validated_data
    return run_submission(services.submit_stock_io, request, items=data['items'], context=data.get('context'))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def save_stock_master(request):
    """Report an ingredient's remaining stock to KRA (saveStockMaster)"""
    serializer = StockMasterSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer)
    data = serializer.validated_data
    return run_submission(
        services.save_stock_master, request,
        ingredient_id=data['ingredient_id'],
        remaining_quantity=data.get('rsd_qty'),
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def save_customer(request):
    """Register a customer with the branch (saveBhfCustomer)"""
    serializer = CustomerRegistrationSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer)
    return run_submission(services.register_customer, request, customer_id=serializer.validated_data['customer_id'])


def reference_list_response(request, kind):
    serializer = ReferenceListSerializer(data=request.query_params)
    if not serializer.is_valid():
        return validation_error_response(serializer)
    return run_submission(
        services.fetch_reference_list, request,
        kind=kind,
        last_request_at=serializer.validated_data.get('last_req_dt'),
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def code_list(request):
    """KRA standard code classes (selectCodeList)"""
    return reference_list_response(request, 'code_list')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def item_classification_list(request):
    """KRA item classification codes (selectItemClsList)"""
    return reference_list_response(request, 'item_classification_list')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notices(request):
    """KRA notices for the taxpayer (selectNoticeList)"""
    return reference_list_response(request, 'notices')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def device_credentials(request):
    """Get the active device credentials or save new ones"""
    if request.method == 'GET':
        credential = get_active_credential()
        if not credential:
            return Response({
                'success': False,
                'error': 'Device not initialized',
                'initialized': False
            }, status=status.HTTP_404_NOT_FOUND)
        return Response({
            'success': True,
            'initialized': True,
            'credential': DeviceCredentialSerializer(credential).data
        })

    if not can_manage_kra(request.user):
        return Response({
            'success': False,
            'error': 'You do not have permission to configure the KRA device'
        }, status=status.HTTP_403_FORBIDDEN)

    serializer = DeviceCredentialSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer)

    with transaction.atomic():
        DeviceCredential.objects.filter(is_active=True).update(is_active=False)
        credential = serializer.save(is_active=True, created_by=request.user)

    logger.info(f"Saved KRA device credentials for {credential.tin}/{credential.bhf_id}")
    create_audit_log(
        request=request,
        action='kra_device_save',
        model_name='DeviceCredential',
        object_id=str(credential.id),
        object_name=credential.tin,
        object_reference=credential.bhf_id,
        changes={'dvc_id': credential.dvc_id, 'sdc_id': credential.sdc_id, 'mrc_no': credential.mrc_no},
    )
    return Response({
        'success': True,
        'message': 'Device credentials saved successfully',
        'credential': DeviceCredentialSerializer(credential).data
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def transaction_list(request):
    """List KRA transactions (filters: type, status, invoice_no, date_from, date_to)"""
    queryset = KraTransaction.objects.all().order_by('-created_at', '-id')
    filterset = KraTransactionFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        return Response({'success': False, 'error': 'Invalid filters', 'errors': filterset.errors},
                        status=status.HTTP_400_BAD_REQUEST)

    page, limit = get_page_params(request, 20)
    paginator = Paginator(filterset.qs, limit)
    page_obj = paginator.get_page(page)

    serializer = KraTransactionListSerializer(page_obj, many=True)
    return Response({
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def transaction_detail(request, pk):
    """Retrieve a KRA transaction with its request and response bodies"""
    record = get_object_or_404(KraTransaction, pk=pk)
    return Response(KraTransactionSerializer(record).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def transaction_statistics(request):
    """Totals by type, status and result code, plus success rate"""
    filterset = KraTransactionFilter(request.query_params, queryset=KraTransaction.objects.all())
    if not filterset.is_valid():
        return Response({'success': False, 'error': 'Invalid filters', 'errors': filterset.errors},
                        status=status.HTTP_400_BAD_REQUEST)
    return Response(services.transaction_statistics(filterset.qs))
