from django.urls import path
from .views import (
    submit_purchase, save_sale, retry_sale, refund_sale,
    register_item, send_item_composition, stock_io, save_stock_master,
    save_customer, code_list, item_classification_list, notices,
    device_credentials,
    transaction_list, transaction_detail, transaction_statistics,
)

urlpatterns = [
    # Fiscal submissions
    path('kra/purchase/', submit_purchase, name='kra-purchase'),
    path('kra/save-sale/', save_sale, name='kra-save-sale'),
    path('kra/retry-sale/', retry_sale, name='kra-retry-sale'),
    path('kra/refund/', refund_sale, name='kra-refund'),

    # Items and stock
    path('kra/register-item/', register_item, name='kra-register-item'),
    path('kra/send-item-composition/', send_item_composition, name='kra-send-item-composition'),
    path('kra/stock-io/', stock_io, name='kra-stock-io'),
    path('kra/save-stock-master/', save_stock_master, name='kra-save-stock-master'),

    # Customers
    path('kra/save-customer/', save_customer, name='kra-save-customer'),

    # Reference lists
    path('kra/code-list/', code_list, name='kra-code-list'),
    path('kra/item-classification-list/', item_classification_list, name='kra-item-classification-list'),
    path('kra/notices/', notices, name='kra-notices'),

    # Device
    path('kra/device-credentials/', device_credentials, name='kra-device-credentials'),

    # Transaction log
    path('kra/transactions/', transaction_list, name='kra-transaction-list'),
    path('kra/transactions/statistics/', transaction_statistics, name='kra-transaction-statistics'),
    path('kra/transactions/<int:pk>/', transaction_detail, name='kra-transaction-detail'),
]
