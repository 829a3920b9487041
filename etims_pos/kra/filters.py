import django_filters
from .models import KraTransaction


class KraTransactionFilter(django_filters.FilterSet):
    type = django_filters.ChoiceFilter(field_name='transaction_type', choices=KraTransaction.TYPE_CHOICES)
    status = django_filters.ChoiceFilter(choices=KraTransaction.STATUS_CHOICES)
    invoice_no = django_filters.NumberFilter()
    result_code = django_filters.CharFilter()
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    purchase = django_filters.NumberFilter(field_name='purchase_id')
    sales_invoice = django_filters.NumberFilter(field_name='sales_invoice_id')
    recipe = django_filters.NumberFilter(field_name='recipe_id')
    ingredient = django_filters.NumberFilter(field_name='ingredient_id')
    customer = django_filters.NumberFilter(field_name='customer_id')

    class Meta:
        model = KraTransaction
        fields = ['type', 'status', 'invoice_no', 'result_code', 'date_from', 'date_to',
                  'purchase', 'sales_invoice', 'recipe', 'ingredient', 'customer']
