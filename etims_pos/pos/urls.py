from django.urls import path
from .views import order_list_create, order_detail, sales_invoice_list, sales_invoice_detail

urlpatterns = [
    path('orders/', order_list_create, name='order-list-create'),
    path('orders/<int:pk>/', order_detail, name='order-detail'),
    path('sales-invoices/', sales_invoice_list, name='sales-invoice-list'),
    path('sales-invoices/<int:pk>/', sales_invoice_detail, name='sales-invoice-detail'),
]
